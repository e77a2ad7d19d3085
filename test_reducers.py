from unittest.mock import MagicMock

import pandas as pd
import pytest

from gee_primer.analysis import reducers
from gee_primer.analysis.reducers import (
    combined_reducer,
    get_reducer,
    map_over_collection,
    reduce_collection,
    region_statistics,
    time_series,
)


@pytest.fixture
def ee_stub(patch_ee):
    return patch_ee(reducers)


@pytest.mark.parametrize("name,factory", [
    ("mean", "mean"),
    ("Average", "mean"),
    ("median", "median"),
    ("stdDev", "stdDev"),
    ("std", "stdDev"),
    ("count", "count"),
])
def test_get_reducer_by_name(ee_stub, name, factory):
    assert get_reducer(name) is getattr(ee_stub.Reducer, factory).return_value


def test_get_reducer_percentiles(ee_stub):
    get_reducer("p90")
    ee_stub.Reducer.percentile.assert_called_once_with([90])
    with pytest.raises(ValueError, match="between 0 and 100"):
        get_reducer("p150")
    with pytest.raises(ValueError, match="Unknown reducer"):
        get_reducer("geometric_mean")


def test_get_reducer_passes_instances_through(ee_stub):
    reducer = MagicMock()
    assert get_reducer(reducer) is reducer


def test_combined_reducer_shares_inputs(ee_stub):
    combined_reducer(["mean", "stdDev"])
    mean = ee_stub.Reducer.mean.return_value
    mean.combine.assert_called_once_with(reducer2=ee_stub.Reducer.stdDev.return_value, sharedInputs=True)
    with pytest.raises(ValueError):
        combined_reducer([])


def test_map_over_collection():
    collection = MagicMock()
    fn = MagicMock()
    assert map_over_collection(collection, fn) is collection.map.return_value
    collection.map.assert_called_once_with(fn)


def test_reduce_collection_shortcuts_keep_band_names(ee_stub):
    collection = MagicMock()
    assert reduce_collection(collection, "median") is collection.median.return_value
    assert reduce_collection(collection, "AVG") is collection.mean.return_value
    collection.reduce.assert_not_called()


def test_reduce_collection_generic_reducer(ee_stub):
    collection = MagicMock()
    reduce_collection(collection, "std_dev")
    collection.reduce.assert_called_once_with(ee_stub.Reducer.stdDev.return_value)


def test_region_statistics(ee_stub):
    image = MagicMock()
    region = MagicMock()
    image.reduceRegion.return_value.getInfo.return_value = {"NDVI": 0.42}
    stats = region_statistics(image, region, "mean", scale=100, max_pixels=1e8)
    assert stats == {"NDVI": 0.42}
    image.reduceRegion.assert_called_once_with(
        reducer=ee_stub.Reducer.mean.return_value,
        geometry=region,
        scale=100,
        maxPixels=1e8,
        bestEffort=False,
    )


def test_region_statistics_errors(ee_stub):
    image = MagicMock()
    with pytest.raises(ValueError):
        region_statistics(image, MagicMock(), scale=0)
    image.reduceRegion.return_value.getInfo.side_effect = ee_stub.EEException("Too many pixels in the region")
    with pytest.raises(RuntimeError, match="Too many pixels"):
        region_statistics(image, MagicMock())
    image.reduceRegion.return_value.getInfo.side_effect = None
    image.reduceRegion.return_value.getInfo.return_value = None
    assert region_statistics(image, MagicMock()) == {}


def test_time_series_builds_sorted_frame(ee_stub):
    collection = MagicMock()
    ee_stub.FeatureCollection.return_value.getInfo.return_value = {
        "features": [
            {"properties": {"date": "2023-07-02", "NDVI": 0.41}},
            {"properties": {"date": "2023-06-01", "NDVI": None}},
            {"properties": {"date": "2023-06-16", "NDVI": 0.38}},
        ]
    }
    df = time_series(collection, "NDVI", MagicMock(), scale=100)
    assert list(df.columns) == ["date", "NDVI"]
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert df["date"].dt.strftime("%Y-%m-%d").tolist() == ["2023-06-01", "2023-06-16", "2023-07-02"]
    assert pd.isna(df.loc[0, "NDVI"])
    assert df.loc[2, "NDVI"] == pytest.approx(0.41)


def test_time_series_per_image_feature(ee_stub):
    collection = MagicMock()
    ee_stub.FeatureCollection.return_value.getInfo.return_value = {"features": []}
    region = MagicMock()
    df = time_series(collection, "NDVI", region, scale=50)
    assert df.empty

    to_feature = collection.map.call_args.args[0]
    image = MagicMock()
    to_feature(image)
    image.select.assert_called_once_with("NDVI")
    kwargs = image.select.return_value.reduceRegion.call_args.kwargs
    assert kwargs["geometry"] is region
    assert kwargs["scale"] == 50
    image.date.return_value.format.assert_called_once_with("YYYY-MM-dd")
    args = ee_stub.Feature.call_args.args
    assert args[0] is None
    assert set(args[1]) == {"date", "NDVI"}


def test_time_series_wraps_server_errors(ee_stub):
    ee_stub.FeatureCollection.return_value.getInfo.side_effect = ee_stub.EEException("User memory limit exceeded")
    with pytest.raises(RuntimeError, match="memory"):
        time_series(MagicMock(), "NDVI", MagicMock())
