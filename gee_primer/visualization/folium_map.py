"""
Folium Map Module

Shows Earth Engine images on interactive Folium maps. Earth Engine renders
the tiles; the map only references the tile URL returned by getMapId.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import ee
import folium
from folium import plugins


EE_ATTRIBUTION = 'Map Data &copy; <a href="https://earthengine.google.com/">Google Earth Engine</a>'


@dataclass
class MapLayer:
    """One Earth Engine image with its visualisation parameters."""
    image: ee.Image
    name: str
    vis_params: Dict = field(default_factory=dict)
    shown: bool = True


def add_ee_layer(folium_map: folium.Map, image: ee.Image, vis_params: Optional[Dict], name: str,
                 shown: bool = True) -> folium.raster_layers.TileLayer:
    """
    Add an Earth Engine image to a Folium map as a tile layer.

    Parameters
    ----------
    folium_map : folium.Map
        Map to add the layer to
    image : ee.Image
        Image to render
    vis_params : dict
        Earth Engine visualisation parameters (bands, min, max, palette, gamma)
    name : str
        Layer name in the layer control
    shown : bool
        Whether the layer is visible when the map opens
    """
    try:
        map_id = image.getMapId(vis_params or {})
    except ee.EEException as e:
        raise RuntimeError(f"Could not render layer '{name}': {e}") from e

    layer = folium.raster_layers.TileLayer(
        tiles=map_id['tile_fetcher'].url_format,
        attr=EE_ATTRIBUTION,
        name=name,
        overlay=True,
        control=True,
        show=shown,
    )
    layer.add_to(folium_map)
    return layer


def create_lesson_map(
    layers: Sequence[MapLayer],
    center: Tuple[float, float],
    zoom_start: int = 10,
    output_path: Optional[Union[str, Path]] = None
) -> folium.Map:
    """
    Create an interactive map with Earth Engine layers.

    Parameters
    ----------
    layers : sequence of MapLayer
        Layers in drawing order (last on top)
    center : tuple
        (lat, lon) the map opens on
    zoom_start : int, optional
        Initial zoom level (default: 10)
    output_path : Path, optional
        Where to save the HTML file; nothing is written when omitted

    Returns
    -------
    folium.Map
    """
    m = folium.Map(location=list(center), zoom_start=zoom_start, tiles='OpenStreetMap')
    folium.TileLayer('CartoDB positron', name='CartoDB Positron').add_to(m)

    for layer in layers:
        add_ee_layer(m, layer.image, layer.vis_params, layer.name, shown=layer.shown)

    folium.LayerControl().add_to(m)
    plugins.Fullscreen().add_to(m)

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        m.save(str(output_path))

    return m


def true_color_vis(bands: Sequence[str], max_value: float = 0.3) -> Dict:
    """Visualisation parameters for a reflectance-scaled RGB composite."""
    return {'bands': list(bands), 'min': 0.0, 'max': max_value, 'gamma': 1.2}
