"""
Lesson 4: mapping functions over collections and reducing them.
"""

import logging

from gee_primer.analysis.indices import index_mapper
from gee_primer.analysis.masking import cloud_mask_for, reflectance_scaler
from gee_primer.analysis.reducers import (
    combined_reducer,
    map_over_collection,
    reduce_collection,
    region_statistics,
    time_series,
)
from gee_primer.lessons.context import LessonContext, banner, narrate, section

logger = logging.getLogger(__name__)

TITLE = "Map and reduce"
SUMMARY = "Cloud-mask every scene, add NDVI, reduce to composites and extract a time series."


def ndvi_collection(ctx: LessonContext):
    """Filtered collection with clouds masked, reflectance scaled and an NDVI band."""
    collection = ctx.filtered_collection()
    collection = map_over_collection(collection, cloud_mask_for(ctx.sensor))
    collection = map_over_collection(collection, reflectance_scaler(ctx.sensor))
    collection = map_over_collection(collection, index_mapper(['NDVI'], ctx.sensor))
    return collection.select('NDVI')


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 4: {TITLE}")

    narrate(f"""
        collection.map(fn) applies fn to every image on Earth Engine's servers,
        in parallel. fn is called once in Python to build the computation, so it
        may only use ee operations.

        We map three functions: a {ctx.sensor.qa_band} cloud mask, reflectance
        scaling, and NDVI.
    """)
    ndvi = ndvi_collection(ctx)

    section("Reducing a collection to one image")
    narrate("""
        A reducer collapses the stack pixel by pixel. median() is robust to
        leftover clouds; stdDev shows how much each pixel varied over time.
    """)
    composite = reduce_collection(ndvi, ctx.reducer)
    variability = reduce_collection(ndvi, 'std_dev')

    composite_stats = region_statistics(
        composite, ctx.region, reducer=combined_reducer(['mean', 'std_dev']),
        scale=ctx.analysis_scale, best_effort=True,
    )
    variability_stats = region_statistics(
        variability, ctx.region, reducer='mean', scale=ctx.analysis_scale, best_effort=True,
    )
    print(f"  {ctx.reducer} NDVI composite, regional mean and spread: {composite_stats}")
    print(f"  Mean per-pixel NDVI standard deviation: {variability_stats}")

    section("Time series")
    narrate("""
        Reducing each image over the region (instead of reducing the stack)
        gives one value per acquisition date.
    """)
    series = time_series(ndvi, 'NDVI', ctx.region, scale=ctx.analysis_scale)
    if series.empty:
        print("  (no observations)")
    else:
        print(series.head(ctx.list_limit * 2).to_string(index=False))
    logger.info("Lesson 4: %d time series rows", len(series))

    return {
        'composite_stats': composite_stats,
        'variability_stats': variability_stats,
        'time_series': series,
    }
