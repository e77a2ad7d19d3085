"""
Lesson 5: putting Earth Engine images on a map.
"""

import logging

from gee_primer.analysis.indices import get_index
from gee_primer.analysis.masking import cloud_mask_for, reflectance_scaler
from gee_primer.analysis.reducers import map_over_collection, reduce_collection
from gee_primer.lessons.context import LessonContext, banner, narrate
from gee_primer.lessons.lesson_04_map_reduce import ndvi_collection
from gee_primer.visualization.folium_map import MapLayer, create_lesson_map, true_color_vis

logger = logging.getLogger(__name__)

TITLE = "Visualization"
SUMMARY = "Render a true colour composite and an NDVI layer on an interactive map."

MAP_FILENAME = "lesson_05_map.html"


def run(ctx: LessonContext) -> dict:
    banner(f"Lesson 5: {TITLE}")
    sensor = ctx.sensor

    narrate("""
        Earth Engine renders map tiles for us. getMapId(vis_params) returns a
        tile URL; vis_params choose bands, the value range (min/max) and a palette.
    """)

    clear = map_over_collection(ctx.filtered_collection(), cloud_mask_for(sensor))
    clear = map_over_collection(clear, reflectance_scaler(sensor))
    true_color = reduce_collection(clear, 'median').clip(ctx.region)
    ndvi = reduce_collection(ndvi_collection(ctx), ctx.reducer).clip(ctx.region)

    layers = [
        MapLayer(true_color, f"{sensor.name} true colour (median)", true_color_vis(sensor.true_color)),
        MapLayer(ndvi, f"NDVI ({ctx.reducer})", get_index('NDVI').vis),
    ]
    output_path = ctx.output_dir / MAP_FILENAME
    create_lesson_map(layers, center=ctx.center, zoom_start=10, output_path=output_path)

    print(f"  Map written to {output_path}")
    logger.info("Lesson 5: map saved to %s", output_path)
    return {'map_path': output_path, 'layers': [layer.name for layer in layers]}
