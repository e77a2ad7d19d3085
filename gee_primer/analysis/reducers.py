"""
Map / Reduce Helpers

Reducer lookup by name, collection reduction, regional statistics and
per-image time series. The mapping and reduction run on Earth Engine's
servers; only region_statistics and time_series pull results back.
"""

import logging
import re
from typing import Any, Callable, Dict, Sequence, Union

import ee
import pandas as pd

logger = logging.getLogger(__name__)


_REDUCER_FACTORIES = {
    'mean': lambda: ee.Reducer.mean(),
    'median': lambda: ee.Reducer.median(),
    'sum': lambda: ee.Reducer.sum(),
    'min': lambda: ee.Reducer.min(),
    'max': lambda: ee.Reducer.max(),
    'std_dev': lambda: ee.Reducer.stdDev(),
    'count': lambda: ee.Reducer.count(),
    'variance': lambda: ee.Reducer.variance(),
    'mode': lambda: ee.Reducer.mode(),
}

_REDUCER_ALIASES = {
    'stddev': 'std_dev',
    'std': 'std_dev',
    'average': 'mean',
    'avg': 'mean',
}

# ImageCollection has shortcut methods for these; they keep the band names
_COLLECTION_SHORTCUTS = ('mean', 'median', 'sum', 'min', 'max', 'mode')

_PERCENTILE_RE = re.compile(r'^p(\d{1,3})$')

ReducerLike = Union[str, ee.Reducer]


def _reducer_key(name: str) -> str:
    key = str(name).strip().lower()
    return _REDUCER_ALIASES.get(key, key)


def reducer_names():
    return list(_REDUCER_FACTORIES) + ['pNN (percentile, e.g. p90)']


def get_reducer(name: ReducerLike) -> ee.Reducer:
    """
    Return an ee.Reducer for a name such as 'mean', 'stdDev' or 'p90'.
    ee.Reducer instances are returned unchanged.
    """
    if not isinstance(name, str):
        return name
    key = _reducer_key(name)
    if key in _REDUCER_FACTORIES:
        return _REDUCER_FACTORIES[key]()
    match = _PERCENTILE_RE.match(key)
    if match:
        percentile = int(match.group(1))
        if percentile > 100:
            raise ValueError(f"Percentile must be between 0 and 100, got {percentile}")
        return ee.Reducer.percentile([percentile])
    raise ValueError(f"Unknown reducer '{name}'. Available: {', '.join(reducer_names())}")


def combined_reducer(names: Sequence[str]) -> ee.Reducer:
    """
    Combine several reducers so one pass computes all of them (e.g. mean + stdDev).
    """
    names = list(names)
    if not names:
        raise ValueError("Name at least one reducer")
    reducer = get_reducer(names[0])
    for name in names[1:]:
        reducer = reducer.combine(reducer2=get_reducer(name), sharedInputs=True)
    return reducer


def map_over_collection(collection: ee.ImageCollection, fn: Callable[[ee.Image], ee.Image]) -> ee.ImageCollection:
    """
    Apply ``fn`` to every image. ``fn`` runs once locally to build the
    server-side graph, so it must only use ee operations (no getInfo, no Python if on ee values).
    """
    return collection.map(fn)


def reduce_collection(collection: ee.ImageCollection, reducer: ReducerLike = 'median') -> ee.Image:
    """
    Collapse a collection into one image, pixel by pixel.

    The shortcut reducers keep band names (NDVI stays NDVI); others append
    the reducer name (NDVI_stdDev).
    """
    if isinstance(reducer, str):
        key = _reducer_key(reducer)
        if key in _COLLECTION_SHORTCUTS:
            return getattr(collection, key)()
    return collection.reduce(get_reducer(reducer))


def region_statistics(image: ee.Image, region, reducer: ReducerLike = 'mean', scale: float = 30,
                      max_pixels: float = 1e9, best_effort: bool = False) -> Dict[str, Any]:
    """
    Summarize the pixels of ``image`` inside ``region``.

    Parameters
    ----------
    image : ee.Image
        Image to summarize
    region : ee.Geometry
        Area to reduce over
    reducer : str or ee.Reducer
        Reducer name or instance (default: mean)
    scale : float
        Pixel size in metres used for the reduction
    max_pixels : float
        Ceiling on pixels touched; Earth Engine errors out above it
    best_effort : bool
        Let Earth Engine coarsen the scale instead of failing on max_pixels

    Returns
    -------
    dict
        Band (or band_reducer) name -> value
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    try:
        stats = image.reduceRegion(
            reducer=get_reducer(reducer),
            geometry=region,
            scale=scale,
            maxPixels=max_pixels,
            bestEffort=best_effort,
        ).getInfo()
    except ee.EEException as e:
        raise RuntimeError(f"reduceRegion failed (try a larger scale or best_effort=True): {e}") from e
    return stats or {}


def time_series(collection: ee.ImageCollection, band: str, region, scale: float = 30,
                reducer: ReducerLike = 'mean', max_pixels: float = 1e9) -> pd.DataFrame:
    """
    Reduce each image over ``region`` and return one row per acquisition.

    Returns
    -------
    pd.DataFrame
        Columns: date (datetime64), ``band``; fully masked images give NaN
    """
    ee_reducer = get_reducer(reducer)

    def _to_feature(image):
        stats = image.select(band).reduceRegion(
            reducer=ee_reducer,
            geometry=region,
            scale=scale,
            maxPixels=max_pixels,
        )
        value = ee.Dictionary(stats).values().get(0)
        return ee.Feature(None, {'date': image.date().format('YYYY-MM-dd'), band: value})

    try:
        info = ee.FeatureCollection(collection.map(_to_feature)).getInfo()
    except ee.EEException as e:
        raise RuntimeError(f"Time series extraction failed: {e}") from e

    rows = []
    for feature in (info or {}).get('features', []):
        props = feature.get('properties', {})
        rows.append({'date': props.get('date'), band: props.get(band)})

    df = pd.DataFrame(rows, columns=['date', band])
    df['date'] = pd.to_datetime(df['date'])
    df[band] = pd.to_numeric(df[band], errors='coerce')
    df = df.sort_values('date').reset_index(drop=True)
    logger.info("Time series for %s: %d observations", band, len(df))
    return df
