"""
Sensor Catalog

Collection ids, band roles and QA information for the optical sensors used
in the lessons. Band roles let the same index formula run on Sentinel-2 and
Landsat without rewriting band names.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


BAND_ROLES = ('blue', 'green', 'red', 'nir', 'swir1', 'swir2')


@dataclass(frozen=True)
class SensorInfo:
    """Static description of one surface reflectance collection."""
    name: str
    collection_id: str
    bands: Dict[str, str]
    cloud_property: str
    qa_band: str
    native_scale: int
    reflectance_multiplier: float
    reflectance_offset: float
    true_color: Tuple[str, str, str]
    optical_bands: Tuple[str, ...] = field(default_factory=tuple)


_LANDSAT_OLI_BANDS = {
    'blue': 'SR_B2',
    'green': 'SR_B3',
    'red': 'SR_B4',
    'nir': 'SR_B5',
    'swir1': 'SR_B6',
    'swir2': 'SR_B7',
}

SENSORS: Dict[str, SensorInfo] = {
    'sentinel2': SensorInfo(
        name='sentinel2',
        collection_id='COPERNICUS/S2_SR_HARMONIZED',
        bands={'blue': 'B2', 'green': 'B3', 'red': 'B4', 'nir': 'B8', 'swir1': 'B11', 'swir2': 'B12'},
        cloud_property='CLOUDY_PIXEL_PERCENTAGE',
        qa_band='QA60',
        native_scale=10,
        reflectance_multiplier=0.0001,
        reflectance_offset=0.0,
        true_color=('B4', 'B3', 'B2'),
        optical_bands=('B1', 'B2', 'B3', 'B4', 'B5', 'B6', 'B7', 'B8', 'B8A', 'B9', 'B11', 'B12'),
    ),
    'landsat8': SensorInfo(
        name='landsat8',
        collection_id='LANDSAT/LC08/C02/T1_L2',
        bands=dict(_LANDSAT_OLI_BANDS),
        cloud_property='CLOUD_COVER',
        qa_band='QA_PIXEL',
        native_scale=30,
        reflectance_multiplier=0.0000275,
        reflectance_offset=-0.2,
        true_color=('SR_B4', 'SR_B3', 'SR_B2'),
        optical_bands=('SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B6', 'SR_B7'),
    ),
    'landsat9': SensorInfo(
        name='landsat9',
        collection_id='LANDSAT/LC09/C02/T1_L2',
        bands=dict(_LANDSAT_OLI_BANDS),
        cloud_property='CLOUD_COVER',
        qa_band='QA_PIXEL',
        native_scale=30,
        reflectance_multiplier=0.0000275,
        reflectance_offset=-0.2,
        true_color=('SR_B4', 'SR_B3', 'SR_B2'),
        optical_bands=('SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B6', 'SR_B7'),
    ),
    'landsat7': SensorInfo(
        name='landsat7',
        collection_id='LANDSAT/LE07/C02/T1_L2',
        bands={'blue': 'SR_B1', 'green': 'SR_B2', 'red': 'SR_B3', 'nir': 'SR_B4', 'swir1': 'SR_B5', 'swir2': 'SR_B7'},
        cloud_property='CLOUD_COVER',
        qa_band='QA_PIXEL',
        native_scale=30,
        reflectance_multiplier=0.0000275,
        reflectance_offset=-0.2,
        true_color=('SR_B3', 'SR_B2', 'SR_B1'),
        optical_bands=('SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B7'),
    ),
}


def get_sensor(name) -> SensorInfo:
    """
    Look up a sensor by name (case-insensitive). SensorInfo instances pass through.

    Raises
    ------
    ValueError
        If the sensor is not in the catalog
    """
    if isinstance(name, SensorInfo):
        return name
    key = str(name).strip().lower().replace('-', '').replace('_', '')
    if key not in SENSORS:
        raise ValueError(f"Unknown sensor '{name}'. Choose one of: {', '.join(SENSORS)}")
    return SENSORS[key]


def band_for(sensor, role: str) -> str:
    """
    Return the band name that plays ``role`` (e.g. 'nir') for a sensor.
    """
    info = get_sensor(sensor)
    role_key = role.lower()
    if role_key not in info.bands:
        raise ValueError(f"Unknown band role '{role}'. Choose one of: {', '.join(BAND_ROLES)}")
    return info.bands[role_key]
