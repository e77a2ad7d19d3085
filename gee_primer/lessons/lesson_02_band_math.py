"""
Lesson 2: band selection and raster arithmetic.
"""

import logging

from gee_primer.analysis.indices import compute_index, ndvi_by_band_math
from gee_primer.analysis.masking import scale_reflectance
from gee_primer.analysis.reducers import region_statistics
from gee_primer.data.acquisition.catalog import BAND_ROLES
from gee_primer.data.acquisition.collections import select_bands
from gee_primer.lessons.context import LessonContext, banner, narrate, section

logger = logging.getLogger(__name__)

TITLE = "Band selection and band math"
SUMMARY = "Select and rename bands, then compute NDVI with arithmetic operators."


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 2: {TITLE}")
    sensor = ctx.sensor

    narrate(f"""
        We start from the clearest scene of the filtered collection and convert
        its stored integers to reflectance (0..1): multiply by
        {sensor.reflectance_multiplier:g} and add {sensor.reflectance_offset:g}.
    """)
    image = scale_reflectance(ctx.least_cloudy_image(), sensor)

    section("Selecting and renaming bands")
    source_bands = [sensor.bands[role] for role in BAND_ROLES]
    narrate(f"""
        image.select(old_names, new_names) picks bands and renames them in one
        step. Renaming to roles makes later formulas readable:
        {', '.join(f'{b} -> {r}' for b, r in zip(source_bands, BAND_ROLES))}
    """)
    renamed = select_bands(image, source_bands, list(BAND_ROLES))
    band_names = renamed.bandNames().getInfo()
    print(f"  Bands after select: {band_names}")

    section("Raster arithmetic")
    narrate("""
        Image operators work pixel by pixel:
            nir.subtract(red).divide(nir.add(red))
        is NDVI. normalizedDifference(['nir', 'red']) computes the same thing.
    """)
    manual = ndvi_by_band_math(image, sensor)
    builtin = compute_index(image, 'NDVI', sensor)
    difference = manual.subtract(builtin).abs().rename('difference')
    stats = region_statistics(
        difference, ctx.region, reducer='max', scale=ctx.analysis_scale, best_effort=True
    )
    max_difference = stats.get('difference')
    print(f"  Largest difference between the two NDVI images: {max_difference}")
    logger.info("Lesson 2: max NDVI difference %s", max_difference)

    return {'bands': band_names, 'max_difference': max_difference}
