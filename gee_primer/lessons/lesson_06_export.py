"""
Lesson 6: exporting imagery with batch tasks.
"""

import logging

from gee_primer.data.acquisition.exporter import ExportConfig, ImageExporter, download_image, sanitize_description
from gee_primer.analysis.reducers import reduce_collection
from gee_primer.lessons.context import LessonContext, banner, narrate, section
from gee_primer.lessons.lesson_04_map_reduce import ndvi_collection
from gee_primer.utils.geospatial import get_utm_crs

logger = logging.getLogger(__name__)

TITLE = "Exporting imagery"
SUMMARY = "Configure an export task (destination, scale, region, projection, pixel ceiling, format) and start it."


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 6: {TITLE}")
    sensor = ctx.sensor

    composite = reduce_collection(ndvi_collection(ctx), ctx.reducer).clip(ctx.region).toFloat()

    lat, lon = ctx.center
    utm_crs = get_utm_crs(lon, lat)
    description = f"ndvi_{ctx.reducer}_{sensor.name}_{ctx.start_date}_{ctx.end_date}"
    export_config = ExportConfig.from_config(
        ctx.config, description, crs=utm_crs, scale=float(sensor.native_scale)
    )

    narrate(f"""
        Exports run as batch tasks on Earth Engine: start() only queues the job.
        The export configuration says:
          destination  -> {export_config.destination} (folder: {export_config.folder})
          scale        -> {export_config.scale:g} m per pixel
          region       -> the lesson region (pixels outside are not written)
          crs          -> {export_config.crs} (local UTM zone, metres)
          maxPixels    -> {export_config.max_pixels:.0e}; larger exports fail
          fileFormat   -> {export_config.file_format}
        Values are cast to float so every pixel has the same data type.
    """)

    exporter = ImageExporter(ctx.config)
    exporter.add(
        composite, description, region=ctx.region,
        crs=export_config.crs, scale=export_config.scale,
    )
    expected = exporter.expected_file_names()

    section("Starting the task")
    task_ids = []
    if ctx.export:
        task_ids = exporter.start_all()
        for task_id in task_ids:
            print(f"  Started task: {task_id}")
        narrate("""
            Follow progress with:  gee-primer status
            or in the Tasks tab of the Code Editor: https://code.earthengine.google.com/
        """)
        logger.info("Lesson 6: started %d export task(s)", len(task_ids))
    else:
        print("  Task created but not started. Re-run with --export to queue it.")

    print(f"  Expected output: {', '.join(expected)}")

    section("Direct download")
    narrate(f"""
        Small results can skip the task queue: getDownloadURL returns a link
        Earth Engine serves immediately (a few tens of MB at most). Here at a
        coarse {ctx.analysis_scale:g} m so the file stays small.
    """)
    download_path = None
    if ctx.export:
        download_path = download_image(
            composite,
            ctx.download_dir / f"{sanitize_description(description)}_preview.tif",
            region=ctx.region,
            scale=ctx.analysis_scale,
            crs=utm_crs,
        )
        print(f"  Downloaded preview to {download_path}")
    else:
        print("  Skipped; re-run with --export to download the preview.")

    return {
        'task_ids': task_ids,
        'expected_files': expected,
        'export_config': export_config,
        'download_path': download_path,
    }
