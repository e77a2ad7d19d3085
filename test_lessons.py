from pathlib import Path
from unittest.mock import MagicMock

import pytest

from gee_primer import lessons
from gee_primer.analysis.indices import INDICES
from gee_primer.data.acquisition import collections, exporter
from gee_primer.data.acquisition.catalog import get_sensor
from gee_primer.lessons import (
    LESSONS,
    LessonContext,
    get_lesson,
    lesson_01_collections,
    lesson_03_indices,
    lesson_06_export,
    run_lessons,
)
from gee_primer.utils import geospatial

CONFIG = {
    "gee": {"export_folder": "gee_primer_exports", "default_scale": 30, "crs": "EPSG:4326",
            "max_pixels": 1e13, "file_format": "GeoTIFF"},
    "region": {"name": "san_francisco_bay", "bbox": [-122.6, 37.6, -122.3, 37.9]},
    "lessons": {"sensor": "sentinel2", "start_date": "2023-01-01", "end_date": "2024-01-01",
                "months": [6, 8], "max_cloud": 20, "list_limit": 5, "reducer": "median",
                "indices": ["NDVI", "NDWI", "EVI"]},
}


def make_context(tmp_path, **overrides):
    values = dict(
        config=CONFIG,
        region=MagicMock(name="region"),
        sensor=get_sensor("sentinel2"),
        start_date="2023-01-01",
        end_date="2024-01-01",
        bbox=(-122.6, 37.6, -122.3, 37.9),
        output_dir=tmp_path / "maps",
        download_dir=tmp_path / "downloads",
    )
    values.update(overrides)
    return LessonContext(**values)


def test_registry_order_and_interface():
    assert list(LESSONS) == ["collections", "band_math", "indices", "map_reduce", "visualization", "export"]
    for module in LESSONS.values():
        assert module.TITLE
        assert module.SUMMARY
        assert callable(module.run)


@pytest.mark.parametrize("key,expected", [
    ("collections", lesson_01_collections),
    ("3", lesson_03_indices),
    ("06", lesson_06_export),
    ("Map-Reduce", LESSONS["map_reduce"]),
])
def test_get_lesson(key, expected):
    assert get_lesson(key) is expected


@pytest.mark.parametrize("key", ["0", "7", "timelapse"])
def test_get_lesson_unknown(key):
    with pytest.raises(ValueError, match="Unknown lesson"):
        get_lesson(key)


def test_run_lessons_in_requested_order(monkeypatch, tmp_path):
    calls = []
    for slug, module in LESSONS.items():
        monkeypatch.setattr(module, "run", lambda ctx, slug=slug: calls.append(slug) or {"slug": slug})
    ctx = make_context(tmp_path)

    results = run_lessons(["indices", "1"], ctx)
    assert calls == ["indices", "collections"]
    assert results == {"indices": {"slug": "indices"}, "collections": {"slug": "collections"}}

    calls.clear()
    run_lessons([], ctx)
    assert calls == list(LESSONS)


def test_context_from_config(patch_ee, tmp_path):
    fake_ee = patch_ee(geospatial)
    config = dict(CONFIG, lessons=dict(CONFIG["lessons"], months="5,9", indices="NDVI, SAVI", sensor="Landsat-8"))
    ctx = LessonContext.from_config(config, output_dir=tmp_path / "maps")
    assert ctx.sensor.name == "landsat8"
    assert ctx.months == (5, 9)
    assert ctx.indices == ["NDVI", "SAVI"]
    assert ctx.max_cloud == 20.0
    assert ctx.download_dir == tmp_path / "downloads"
    assert ctx.region is fake_ee.Geometry.Rectangle.return_value
    assert ctx.center == pytest.approx((37.75, -122.45))
    assert ctx.analysis_scale == 300.0


def test_context_rejects_bad_months(patch_ee, tmp_path):
    patch_ee(geospatial)
    config = dict(CONFIG, lessons=dict(CONFIG["lessons"], months=[6]))
    with pytest.raises(ValueError, match="months"):
        LessonContext.from_config(config, output_dir=tmp_path)


def test_dataset_config(tmp_path):
    ctx = make_context(tmp_path)
    assert ctx.dataset_config(months=[6, 8]) == {
        "sensor": "sentinel2",
        "date_range": ["2023-01-01", "2024-01-01"],
        "max_cloud": 20.0,
        "months": [6, 8],
    }


def test_reference_table_orders_surfaces():
    table = lesson_03_indices.reference_table(["NDVI", "NDWI", "EVI"]).set_index("surface")
    assert table.loc["dense vegetation", "NDVI"] > 0.6
    assert table.loc["dense vegetation", "NDVI"] > table.loc["bare soil", "NDVI"] > table.loc["open water", "NDVI"]
    assert table.loc["open water", "NDWI"] > 0 > table.loc["dense vegetation", "NDWI"]
    assert set(table.columns) == {"NDVI", "NDWI", "EVI"}


def test_reference_surfaces_cover_every_band_role():
    for reflectances in lesson_03_indices.REFERENCE_SURFACES.values():
        for definition in INDICES.values():
            assert set(definition.roles) <= set(reflectances)


def test_collections_lesson_runs_against_stub(patch_ee, tmp_path, capsys):
    patch_ee(collections)
    result = lesson_01_collections.run(make_context(tmp_path))
    assert set(result) == {"in_window", "seasonal", "clear", "combined", "either", "outside", "table"}
    assert result["table"].empty
    output = capsys.readouterr().out
    assert "Lesson 1: Image collections and filters" in output
    assert "COPERNICUS/S2_SR_HARMONIZED" in output


def test_export_lesson_creates_task_without_starting(patch_ee, tmp_path, capsys):
    fake_ee = patch_ee(collections, exporter)
    result = lesson_06_export.run(make_context(tmp_path))

    kwargs = fake_ee.batch.Export.image.toDrive.call_args.kwargs
    assert kwargs["crs"] == "EPSG:32610"
    assert kwargs["scale"] == 10.0
    assert kwargs["maxPixels"] == 10 ** 13
    assert kwargs["folder"] == "gee_primer_exports"
    assert kwargs["fileFormat"] == "GeoTIFF"
    fake_ee.batch.Export.image.toDrive.return_value.start.assert_not_called()

    assert result["task_ids"] == []
    assert result["download_path"] is None
    assert result["expected_files"] == ["ndvi_median_sentinel2_2023-01-01_2024-01-01.tif"]
    assert "re-run with --export" in capsys.readouterr().out


def test_export_lesson_starts_task_and_downloads_with_export_flag(patch_ee, monkeypatch, tmp_path):
    fake_ee = patch_ee(collections, exporter)
    fake_ee.batch.Export.image.toDrive.return_value.id = "TASK42"
    downloaded = []
    monkeypatch.setattr(
        lesson_06_export, "download_image",
        lambda image, path, **kwargs: downloaded.append((path, kwargs)) or Path(path),
    )
    result = lesson_06_export.run(make_context(tmp_path, export=True))

    assert result["task_ids"] == ["TASK42"]
    fake_ee.batch.Export.image.toDrive.return_value.start.assert_called_once_with()
    path, kwargs = downloaded[0]
    assert path.parent == tmp_path / "downloads"
    assert kwargs["scale"] == 100.0
    assert kwargs["crs"] == "EPSG:32610"


def test_lessons_package_exports():
    assert set(lessons.__all__) >= {"LESSONS", "LessonContext", "get_lesson", "run_lessons"}


def test_band_math_lesson_compares_manual_and_builtin_ndvi(patch_ee, monkeypatch, tmp_path):
    from gee_primer.lessons import lesson_02_band_math
    patch_ee(collections)
    calls = []
    monkeypatch.setattr(lesson_02_band_math, "region_statistics",
                        lambda image, region, **kwargs: calls.append(kwargs) or {"difference": 0.0})
    result = lesson_02_band_math.run(make_context(tmp_path))
    assert result["max_difference"] == 0.0
    assert calls[0]["reducer"] == "max"
    assert calls[0]["scale"] == 100.0


def test_indices_lesson_reports_each_index(patch_ee, monkeypatch, tmp_path):
    patch_ee(collections)
    monkeypatch.setattr(lesson_03_indices, "region_statistics",
                        lambda image, region, **kwargs: {"NDVI": 0.41, "NDWI": -0.32, "EVI": 0.37})
    ctx = make_context(tmp_path, indices=["NDVI", "NDWI", "EVI"])
    result = lesson_03_indices.run(ctx)
    means = result["means"].set_index("index")
    assert means.loc["NDVI", "method"] == "normalizedDifference"
    assert means.loc["EVI", "method"] == "expression"
    assert means.loc["NDWI", "mean"] == -0.32
    assert list(result["expected"]["surface"]) == list(lesson_03_indices.REFERENCE_SURFACES)


def test_map_reduce_lesson(patch_ee, monkeypatch, tmp_path):
    import pandas as pd
    from gee_primer.analysis import reducers
    from gee_primer.lessons import lesson_04_map_reduce
    patch_ee(collections, reducers)
    monkeypatch.setattr(lesson_04_map_reduce, "combined_reducer", lambda names: "mean+stdDev")
    monkeypatch.setattr(lesson_04_map_reduce, "region_statistics",
                        lambda image, region, reducer, **kwargs: {"reducer": reducer})
    series = pd.DataFrame({"date": pd.to_datetime(["2023-06-01"]), "NDVI": [0.4]})
    monkeypatch.setattr(lesson_04_map_reduce, "time_series", lambda *args, **kwargs: series)

    result = lesson_04_map_reduce.run(make_context(tmp_path))
    assert result["composite_stats"] == {"reducer": "mean+stdDev"}
    assert result["variability_stats"] == {"reducer": "mean"}
    assert result["time_series"] is series


def test_visualization_lesson_writes_map(patch_ee, monkeypatch, tmp_path):
    from gee_primer.lessons import lesson_05_visualization
    patch_ee(collections)
    create_map = MagicMock()
    monkeypatch.setattr(lesson_05_visualization, "create_lesson_map", create_map)

    result = lesson_05_visualization.run(make_context(tmp_path))
    layers = create_map.call_args.args[0]
    kwargs = create_map.call_args.kwargs
    assert [layer.name for layer in layers] == result["layers"]
    assert layers[0].vis_params["bands"] == ["B4", "B3", "B2"]
    assert layers[1].vis_params == INDICES["NDVI"].vis
    assert kwargs["center"] == pytest.approx((37.75, -122.45))
    assert result["map_path"] == tmp_path / "maps" / "lesson_05_map.html"
