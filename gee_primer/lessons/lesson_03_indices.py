"""
Lesson 3: spectral indices with normalizedDifference and expression.
"""

import logging

import pandas as pd

from gee_primer.analysis.indices import compute_index, compute_index_array, get_index
from gee_primer.analysis.masking import scale_reflectance
from gee_primer.analysis.reducers import region_statistics
from gee_primer.lessons.context import LessonContext, banner, narrate, section

logger = logging.getLogger(__name__)

TITLE = "Spectral indices"
SUMMARY = "Compute NDVI, NDWI, EVI and friends and compare their regional means."

# Typical reflectances used to show what index values to expect
REFERENCE_SURFACES = {
    'dense vegetation': {'blue': 0.03, 'green': 0.07, 'red': 0.04, 'nir': 0.45, 'swir1': 0.20, 'swir2': 0.09},
    'bare soil': {'blue': 0.10, 'green': 0.14, 'red': 0.18, 'nir': 0.25, 'swir1': 0.32, 'swir2': 0.28},
    'open water': {'blue': 0.06, 'green': 0.07, 'red': 0.04, 'nir': 0.02, 'swir1': 0.01, 'swir2': 0.01},
}


def reference_table(index_names) -> pd.DataFrame:
    """Index values for the reference surfaces, computed locally with numpy."""
    rows = []
    for surface, reflectances in REFERENCE_SURFACES.items():
        row = {'surface': surface}
        for name in index_names:
            definition = get_index(name)
            arrays = {role: reflectances[role] for role in definition.roles}
            row[definition.name] = round(float(compute_index_array(definition.name, **arrays)), 3)
        rows.append(row)
    return pd.DataFrame(rows)


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 3: {TITLE}")
    sensor = ctx.sensor
    image = scale_reflectance(ctx.least_cloudy_image(), sensor)

    narrate("""
        Two ways to write an index:
          * image.normalizedDifference([a, b]) for (a - b) / (a + b)
          * image.expression('2.5 * ((NIR - RED) / ...)', {'NIR': ..., 'RED': ...})
            for anything else. Variables in the string map to single-band images.
    """)

    section("What to expect")
    expected = reference_table(ctx.indices)
    print(expected.to_string(index=False))

    section(f"Regional means over the clearest {sensor.name} scene")
    rows = []
    for name in ctx.indices:
        definition = get_index(name)
        index_image = compute_index(image, definition.name, sensor)
        stats = region_statistics(
            index_image, ctx.region, reducer='mean', scale=ctx.analysis_scale, best_effort=True
        )
        value = stats.get(definition.name)
        method = 'normalizedDifference' if definition.kind == 'normalized_difference' else 'expression'
        rows.append({'index': definition.name, 'method': method, 'mean': value})
        logger.info("Lesson 3: %s mean %s", definition.name, value)

    means = pd.DataFrame(rows, columns=['index', 'method', 'mean'])
    print(means.to_string(index=False))

    return {'expected': expected, 'means': means}
