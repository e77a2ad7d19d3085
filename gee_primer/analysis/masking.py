"""
Cloud Masking and Pixel Masks

Per-image functions meant to be passed to ImageCollection.map().
"""

from typing import Callable, Iterable, Sequence

import ee

from gee_primer.data.acquisition.catalog import get_sensor
from gee_primer.data.acquisition.collections import normalize_operator


# Sentinel-2 QA60 bits
S2_OPAQUE_CLOUD_BIT = 10
S2_CIRRUS_BIT = 11

# Landsat Collection 2 QA_PIXEL bits
LANDSAT_DILATED_CLOUD_BIT = 1
LANDSAT_CIRRUS_BIT = 2
LANDSAT_CLOUD_BIT = 3
LANDSAT_SHADOW_BIT = 4
LANDSAT_SNOW_BIT = 5

# Sentinel-2 scene classification: 4 vegetation, 5 bare soil, 6 water
S2_SCL_CLEAR_CLASSES = (4, 5, 6)


def qa_bits_clear(qa: ee.Image, bits: Iterable[int]) -> ee.Image:
    """
    Mask that is 1 where every listed QA bit is 0.
    """
    bits = list(bits)
    if not bits:
        raise ValueError("At least one QA bit is required")
    mask = qa.bitwiseAnd(1 << bits[0]).eq(0)
    for bit in bits[1:]:
        mask = mask.And(qa.bitwiseAnd(1 << bit).eq(0))
    return mask


def mask_s2_clouds(image: ee.Image) -> ee.Image:
    """Mask opaque clouds and cirrus using the Sentinel-2 QA60 band."""
    qa = image.select('QA60')
    return image.updateMask(qa_bits_clear(qa, [S2_OPAQUE_CLOUD_BIT, S2_CIRRUS_BIT]))


def mask_s2_scl(image: ee.Image, keep: Sequence[int] = S2_SCL_CLEAR_CLASSES) -> ee.Image:
    """Keep only the listed scene classification (SCL) classes."""
    keep = list(keep)
    if not keep:
        raise ValueError("keep must list at least one SCL class")
    scl = image.select('SCL')
    mask = scl.eq(keep[0])
    for value in keep[1:]:
        mask = mask.Or(scl.eq(value))
    return image.updateMask(mask)


def mask_landsat_clouds(image: ee.Image) -> ee.Image:
    """Mask dilated cloud, cirrus, cloud, shadow and snow using QA_PIXEL."""
    qa = image.select('QA_PIXEL')
    bits = [
        LANDSAT_DILATED_CLOUD_BIT,
        LANDSAT_CIRRUS_BIT,
        LANDSAT_CLOUD_BIT,
        LANDSAT_SHADOW_BIT,
        LANDSAT_SNOW_BIT,
    ]
    return image.updateMask(qa_bits_clear(qa, bits))


def cloud_mask_for(sensor) -> Callable[[ee.Image], ee.Image]:
    """
    Return the cloud mask function that matches a sensor's QA band.
    """
    info = get_sensor(sensor)
    if info.qa_band == 'QA60':
        return mask_s2_clouds
    if info.qa_band == 'QA_PIXEL':
        return mask_landsat_clouds
    raise ValueError(f"No cloud mask available for sensor '{info.name}'")


def scale_reflectance(image: ee.Image, sensor) -> ee.Image:
    """
    Convert stored integers to surface reflectance (0..1) for the optical bands.

    Landsat Collection 2 uses 0.0000275 * DN - 0.2, Sentinel-2 uses DN / 10000.
    """
    info = get_sensor(sensor)
    optical = image.select(list(info.optical_bands))
    scaled = optical.multiply(info.reflectance_multiplier)
    if info.reflectance_offset:
        scaled = scaled.add(info.reflectance_offset)
    return image.addBands(scaled, None, True)


def reflectance_scaler(sensor) -> Callable[[ee.Image], ee.Image]:
    """Bind scale_reflectance to a sensor for use with collection.map()."""
    info = get_sensor(sensor)

    def _scale(image):
        return scale_reflectance(image, info)

    return _scale


def threshold_mask(image: ee.Image, band: str, op: str, value: float) -> ee.Image:
    """
    Mask pixels of ``image`` where ``band`` fails the comparison, e.g. NDVI > 0.3.
    """
    op = normalize_operator(op)
    if op == 'in':
        raise ValueError("The 'in' operator is not supported for pixel masks")
    comparison = getattr(image.select(band), op)(value)
    return image.updateMask(comparison)
