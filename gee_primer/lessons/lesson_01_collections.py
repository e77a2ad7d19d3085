"""
Lesson 1: image collections and filters.
"""

import logging

from gee_primer.data.acquisition.collections import (
    calendar_filter,
    check_not_empty,
    collection_size,
    collection_to_list,
    combine_filters,
    describe_filters,
    filter_by_bounds,
    filter_by_calendar,
    filter_by_date,
    filter_by_metadata,
    image_at,
    load_collection,
    metadata_filter,
    negate_filter,
    summarize_collection,
)
from gee_primer.lessons.context import LessonContext, banner, narrate, section

logger = logging.getLogger(__name__)

TITLE = "Image collections and filters"
SUMMARY = "Load a collection and narrow it down by place, date, season and cloud cover."


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 1: {TITLE}")
    sensor = ctx.sensor

    narrate(f"""
        An image collection is a server-side stack of images plus their metadata.
        Nothing is downloaded when we create one; we only describe what we want.

            collection = ee.ImageCollection('{sensor.collection_id}')
    """)
    collection = load_collection(sensor.collection_id)

    section("Spatial and date filters")
    narrate(f"""
        filterBounds keeps scenes whose footprint touches our region.
        filterDate keeps scenes acquired from {ctx.start_date} up to, but not
        including, {ctx.end_date}.
    """)
    in_window = filter_by_date(filter_by_bounds(collection, ctx.region), ctx.start_date, ctx.end_date)
    n_window = collection_size(in_window)
    print(f"  Scenes over the region in the date window: {n_window}")
    logger.info("Lesson 1: %d scenes in window", n_window)

    section("Calendar filter")
    start_month, end_month = ctx.months
    narrate(f"""
        ee.Filter.calendarRange selects by calendar position regardless of year.
        Here: months {start_month} to {end_month}.
    """)
    seasonal = filter_by_calendar(in_window, start_month, end_month, 'month')
    n_seasonal = collection_size(seasonal)
    print(f"  Scenes in months {start_month}-{end_month}: {n_seasonal}")

    section("Metadata filter")
    narrate(f"""
        Every scene carries properties. {sensor.cloud_property} is the scene-wide
        cloud percentage, so ee.Filter.lt('{sensor.cloud_property}', {ctx.max_cloud:g})
        keeps the clearer scenes. A misspelled property name does not raise an
        error; it just returns an empty collection.
    """)
    clear = filter_by_metadata(seasonal, sensor.cloud_property, 'lt', ctx.max_cloud)
    n_clear = check_not_empty(clear, "the seasonal, low-cloud collection")
    print(f"  Scenes with {sensor.cloud_property} < {ctx.max_cloud:g}: {n_clear}")

    section("Combining filters")
    narrate("""
        Filters combine with ee.Filter.And / ee.Filter.Or, and filter.Not() inverts
        one. A combined And filter gives the same result as applying the two
        filters in sequence.
    """)
    combined = combine_filters([
        calendar_filter(start_month, end_month, 'month'),
        metadata_filter(sensor.cloud_property, 'lt', ctx.max_cloud),
    ], how='and')
    n_combined = collection_size(in_window.filter(combined))
    print(f"  And(calendar, cloud) -> {n_combined} scenes (sequential: {n_clear})")

    either = combine_filters([
        metadata_filter(sensor.cloud_property, 'lt', 5),
        calendar_filter(start_month, end_month, 'month'),
    ], how='or')
    n_either = collection_size(in_window.filter(either))
    print(f"  Or(cloud < 5, calendar) -> {n_either} scenes")

    outside = negate_filter(calendar_filter(start_month, end_month, 'month'))
    n_outside = collection_size(in_window.filter(outside))
    print(f"  Not(calendar) -> {n_outside} scenes outside months {start_month}-{end_month}")

    section("Filters applied so far")
    for line in describe_filters(ctx.dataset_config(months=list(ctx.months))):
        print(f"  - {line}")

    section("Lists and single images")
    narrate(f"""
        Collections have no index. To pick the n-th image, convert the first
        few to an ee.List with toList(count) and take an element.
        We sort by {sensor.cloud_property} first so element 0 is the clearest scene.
    """)
    ordered = clear.sort(sensor.cloud_property)
    as_list = collection_to_list(ordered, ctx.list_limit)
    print(f"  List length: {as_list.size().getInfo()}")
    clearest = image_at(ordered, 0, ctx.list_limit)
    print(f"  Clearest scene: {clearest.get('system:index').getInfo()}")

    section("Metadata table")
    table = summarize_collection(ordered, sensor.cloud_property, limit=ctx.list_limit)
    if table.empty:
        print("  (no scenes)")
    else:
        print(table.to_string(index=False))

    return {
        'in_window': n_window,
        'seasonal': n_seasonal,
        'clear': n_clear,
        'combined': n_combined,
        'either': n_either,
        'outside': n_outside,
        'table': table,
    }
