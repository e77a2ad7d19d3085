from types import SimpleNamespace
from unittest.mock import MagicMock

import folium
import pytest

from gee_primer.visualization import folium_map
from gee_primer.visualization.folium_map import MapLayer, add_ee_layer, create_lesson_map, true_color_vis

TILE_URL = "https://earthengine.googleapis.com/v1/projects/demo/maps/abc123/tiles/{z}/{x}/{y}"


def ee_image():
    image = MagicMock()
    image.getMapId.return_value = {"mapid": "abc123", "tile_fetcher": SimpleNamespace(url_format=TILE_URL)}
    return image


def test_add_ee_layer_uses_tile_url():
    m = folium.Map(location=[37.75, -122.45], zoom_start=10)
    image = ee_image()
    layer = add_ee_layer(m, image, {"min": 0, "max": 1}, "NDVI", shown=False)
    image.getMapId.assert_called_once_with({"min": 0, "max": 1})
    assert layer.tiles == TILE_URL
    assert layer.layer_name == "NDVI"


def test_add_ee_layer_wraps_render_errors(patch_ee):
    fake_ee = patch_ee(folium_map)
    image = MagicMock()
    image.getMapId.side_effect = fake_ee.EEException("Image.visualize: No band named 'NDVI'")
    with pytest.raises(RuntimeError, match="No band named"):
        add_ee_layer(folium.Map(), image, None, "NDVI")


def test_create_lesson_map_saves_html(tmp_path):
    layers = [
        MapLayer(ee_image(), "True color", true_color_vis(["B4", "B3", "B2"])),
        MapLayer(ee_image(), "NDVI", {"min": -0.2, "max": 0.8}, shown=False),
    ]
    output = tmp_path / "maps" / "lesson.html"
    m = create_lesson_map(layers, center=(37.75, -122.45), zoom_start=11, output_path=output)

    assert isinstance(m, folium.Map)
    html = output.read_text(encoding="utf-8")
    assert "earthengine.googleapis.com" in html
    assert "True color" in html
    assert "Google Earth Engine" in html


def test_create_lesson_map_without_output_writes_nothing(tmp_path):
    create_lesson_map([], center=(0, 0))
    assert list(tmp_path.iterdir()) == []


def test_true_color_vis():
    assert true_color_vis(("SR_B4", "SR_B3", "SR_B2"), 0.25) == {
        "bands": ["SR_B4", "SR_B3", "SR_B2"], "min": 0.0, "max": 0.25, "gamma": 1.2,
    }
