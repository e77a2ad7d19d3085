"""
Spectral Index Calculations

Registry of spectral indices expressed in band roles (nir, red, ...) so
they run on any sensor in the catalog. Normalized differences go through
ee.Image.normalizedDifference; the rest through ee.Image.expression.

Each index also carries a numpy version (``local``) so a formula can be
checked against known reflectance values without an Earth Engine session.

Expression-based indices (EVI, SAVI) assume reflectance in 0..1, so scale
the image first with masking.scale_reflectance.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import ee
import numpy as np

from gee_primer.data.acquisition.catalog import band_for, get_sensor


NDVI_PALETTE = ['#d73027', '#fc8d59', '#fee08b', '#d9ef8b', '#91cf60', '#1a9850']
WATER_PALETTE = ['#8c510a', '#f6e8c3', '#c7eae5', '#5ab4ac', '#01665e']
BURN_PALETTE = ['#ffffff', '#fdae61', '#d7191c', '#2c0a0a']


def _normalized_difference(a, b):
    return (a - b) / (a + b)


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    description: str
    roles: Tuple[str, ...]
    kind: str
    local: Callable[..., np.ndarray]
    expression: Optional[str] = None
    vis: Dict = field(default_factory=dict)


INDICES: Dict[str, IndexDefinition] = {
    'NDVI': IndexDefinition(
        name='NDVI',
        description='Normalized Difference Vegetation Index: (NIR - RED) / (NIR + RED)',
        roles=('nir', 'red'),
        kind='normalized_difference',
        local=lambda nir, red: _normalized_difference(nir, red),
        vis={'min': -0.2, 'max': 0.8, 'palette': NDVI_PALETTE},
    ),
    'NDWI': IndexDefinition(
        name='NDWI',
        description='Normalized Difference Water Index (McFeeters): (GREEN - NIR) / (GREEN + NIR)',
        roles=('green', 'nir'),
        kind='normalized_difference',
        local=lambda green, nir: _normalized_difference(green, nir),
        vis={'min': -0.5, 'max': 0.5, 'palette': WATER_PALETTE},
    ),
    'MNDWI': IndexDefinition(
        name='MNDWI',
        description='Modified NDWI: (GREEN - SWIR1) / (GREEN + SWIR1)',
        roles=('green', 'swir1'),
        kind='normalized_difference',
        local=lambda green, swir1: _normalized_difference(green, swir1),
        vis={'min': -0.5, 'max': 0.5, 'palette': WATER_PALETTE},
    ),
    'NDBI': IndexDefinition(
        name='NDBI',
        description='Normalized Difference Built-up Index: (SWIR1 - NIR) / (SWIR1 + NIR)',
        roles=('swir1', 'nir'),
        kind='normalized_difference',
        local=lambda swir1, nir: _normalized_difference(swir1, nir),
        vis={'min': -0.5, 'max': 0.5, 'palette': ['#1a9850', '#ffffbf', '#d73027']},
    ),
    'NBR': IndexDefinition(
        name='NBR',
        description='Normalized Burn Ratio: (NIR - SWIR2) / (NIR + SWIR2)',
        roles=('nir', 'swir2'),
        kind='normalized_difference',
        local=lambda nir, swir2: _normalized_difference(nir, swir2),
        vis={'min': -0.5, 'max': 1.0, 'palette': BURN_PALETTE[::-1]},
    ),
    'EVI': IndexDefinition(
        name='EVI',
        description='Enhanced Vegetation Index: 2.5 * (NIR - RED) / (NIR + 6 RED - 7.5 BLUE + 1)',
        roles=('nir', 'red', 'blue'),
        kind='expression',
        expression='2.5 * ((NIR - RED) / (NIR + 6 * RED - 7.5 * BLUE + 1))',
        local=lambda nir, red, blue: 2.5 * ((nir - red) / (nir + 6 * red - 7.5 * blue + 1)),
        vis={'min': -0.2, 'max': 0.8, 'palette': NDVI_PALETTE},
    ),
    'SAVI': IndexDefinition(
        name='SAVI',
        description='Soil Adjusted Vegetation Index (L = 0.5): 1.5 * (NIR - RED) / (NIR + RED + 0.5)',
        roles=('nir', 'red'),
        kind='expression',
        expression='1.5 * (NIR - RED) / (NIR + RED + 0.5)',
        local=lambda nir, red: 1.5 * (nir - red) / (nir + red + 0.5),
        vis={'min': -0.2, 'max': 0.8, 'palette': NDVI_PALETTE},
    ),
}


def get_index(name: str) -> IndexDefinition:
    """
    Look up an index definition by name (case-insensitive).
    """
    key = str(name).strip().upper()
    if key not in INDICES:
        raise ValueError(f"Unknown index '{name}'. Available: {', '.join(INDICES)}")
    return INDICES[key]


def available_indices() -> List[str]:
    return list(INDICES)


def compute_index(image: ee.Image, name: str, sensor) -> ee.Image:
    """
    Compute one spectral index as a single band named after the index.

    Parameters
    ----------
    image : ee.Image
        Source image from the sensor's collection
    name : str
        Index name, e.g. 'NDVI'
    sensor : str or SensorInfo
        Sensor whose band names are used

    Returns
    -------
    ee.Image
        Single-band image
    """
    definition = get_index(name)
    info = get_sensor(sensor)
    bands = [band_for(info, role) for role in definition.roles]

    if definition.kind == 'normalized_difference':
        return image.normalizedDifference(bands).rename(definition.name)

    band_map = {role.upper(): image.select(band) for role, band in zip(definition.roles, bands)}
    return image.expression(definition.expression, band_map).rename(definition.name)


def add_index_bands(image: ee.Image, names: Sequence[str], sensor) -> ee.Image:
    """
    Append index bands to an image (keeps the original bands).
    """
    names = list(names)
    if not names:
        raise ValueError("Name at least one index")
    result = image
    for name in names:
        result = result.addBands(compute_index(image, name, sensor))
    return result


def index_mapper(names: Sequence[str], sensor) -> Callable[[ee.Image], ee.Image]:
    """
    Build a function for ImageCollection.map() that adds index bands.
    """
    names = [get_index(n).name for n in names]
    info = get_sensor(sensor)

    def _add_indices(image):
        return add_index_bands(image, names, info)

    return _add_indices


def ndvi_by_band_math(image: ee.Image, sensor) -> ee.Image:
    """
    NDVI written with raster arithmetic operators instead of normalizedDifference.
    Gives the same values; shown in the band math lesson.
    """
    nir = image.select(band_for(sensor, 'nir'))
    red = image.select(band_for(sensor, 'red'))
    return nir.subtract(red).divide(nir.add(red)).rename('NDVI_band_math')


def compute_index_array(name: str, **arrays) -> np.ndarray:
    """
    Evaluate an index with numpy, keyed by band role.

    >>> round(float(compute_index_array('NDVI', nir=0.5, red=0.1)), 3)
    0.667

    Zero denominators give nan.
    """
    definition = get_index(name)
    missing = [role for role in definition.roles if role not in arrays]
    if missing:
        raise ValueError(f"{definition.name} needs bands: {', '.join(missing)}")
    values = [np.asarray(arrays[role], dtype=float) for role in definition.roles]
    with np.errstate(divide='ignore', invalid='ignore'):
        result = definition.local(*values)
    result = np.asarray(result, dtype=float)
    return np.where(np.isfinite(result), result, np.nan)
