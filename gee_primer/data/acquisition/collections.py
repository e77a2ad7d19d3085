"""
Image Collection Helpers

Loading and filtering of Earth Engine image collections: spatial, date,
calendar and metadata filters, band selection and list conversion.
Everything here builds server-side objects; only collection_size,
summarize_collection and check_not_empty trigger a round trip (getInfo).
"""

import datetime as dt
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import ee
import pandas as pd

from gee_primer.data.acquisition.catalog import get_sensor

logger = logging.getLogger(__name__)


# Valid ranges for ee.Filter.calendarRange fields (inclusive)
CALENDAR_FIELDS = {
    'year': (1, 9999),
    'month': (1, 12),
    'week_of_year': (1, 53),
    'day_of_year': (1, 366),
    'day_of_month': (1, 31),
    'day_of_week': (1, 7),
    'hour': (0, 23),
}

_OPERATOR_ALIASES = {
    '<': 'lt',
    '<=': 'lte',
    '>': 'gt',
    '>=': 'gte',
    '==': 'eq',
    '=': 'eq',
    '!=': 'neq',
    'less_than': 'lt',
    'greater_than': 'gt',
    'equals': 'eq',
}

METADATA_OPERATORS = ('lt', 'lte', 'gt', 'gte', 'eq', 'neq', 'in')

DateLike = Union[str, dt.date, dt.datetime]


def normalize_operator(op: str) -> str:
    """
    Map operator spellings ('<', 'lte', ...) onto the canonical names.
    """
    key = str(op).strip().lower()
    key = _OPERATOR_ALIASES.get(key, key)
    if key not in METADATA_OPERATORS:
        raise ValueError(f"Unknown comparison operator '{op}'. Use one of: {', '.join(METADATA_OPERATORS)}")
    return key


def _to_datetime(value: DateLike) -> dt.datetime:
    """Parse an ISO date or timestamp; naive values are taken as UTC, like ee.Date."""
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Dates must be ISO formatted (YYYY-MM-DD or YYYY-MM-DDTHH:MM), got {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def _ee_date_string(value: dt.datetime) -> str:
    # UTC midnight stays a plain date
    if value.utcoffset() == dt.timedelta(0) and value.time() == dt.time(0):
        return value.date().isoformat()
    return value.isoformat()


def load_collection(source) -> ee.ImageCollection:
    """
    Load an image collection by sensor key ('sentinel2', 'Landsat-8') or full asset id.
    """
    try:
        collection_id = get_sensor(source).collection_id
    except ValueError:
        collection_id = str(source)
    logger.debug("Loading collection %s", collection_id)
    return ee.ImageCollection(collection_id)


def filter_by_bounds(collection: ee.ImageCollection, geometry) -> ee.ImageCollection:
    """
    Keep images whose footprint intersects ``geometry``.
    """
    return collection.filterBounds(geometry)


def filter_by_date(collection: ee.ImageCollection, start: DateLike, end: DateLike) -> ee.ImageCollection:
    """
    Keep images acquired in [start, end). The end is exclusive. Dates or
    ISO timestamps are accepted; timestamps without an offset are UTC.

    Raises
    ------
    ValueError
        If either date is malformed or the window is empty
    """
    start_date = _to_datetime(start)
    end_date = _to_datetime(end)
    if start_date >= end_date:
        raise ValueError(f"Start {_ee_date_string(start_date)} must be before end {_ee_date_string(end_date)}")
    return collection.filterDate(_ee_date_string(start_date), _ee_date_string(end_date))


def calendar_filter(start: int, end: int, field: str = 'month') -> ee.Filter:
    """
    Build an ee.Filter.calendarRange, e.g. months 6..8 of every year.

    Ranges may wrap around (start=11, end=2 selects November to February).
    """
    if field not in CALENDAR_FIELDS:
        raise ValueError(f"Unknown calendar field '{field}'. Use one of: {', '.join(CALENDAR_FIELDS)}")
    low, high = CALENDAR_FIELDS[field]
    for value in (start, end):
        if not low <= int(value) <= high:
            raise ValueError(f"{field} value {value} outside range {low}..{high}")
    return ee.Filter.calendarRange(int(start), int(end), field)


def filter_by_calendar(collection: ee.ImageCollection, start: int, end: int,
                       field: str = 'month') -> ee.ImageCollection:
    """
    Keep images whose acquisition falls in a calendar range across all years.
    """
    return collection.filter(calendar_filter(start, end, field))


def metadata_filter(property_name: str, op: str, value: Any) -> ee.Filter:
    """
    Build a metadata comparison filter such as CLOUD_COVER < 20.
    """
    if not property_name:
        raise ValueError("A metadata property name is required")
    op = normalize_operator(op)
    if op == 'in':
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise ValueError("The 'in' operator needs a list of values")
        return ee.Filter.inList(property_name, list(value))
    factory = getattr(ee.Filter, op)
    return factory(property_name, value)


def filter_by_metadata(collection: ee.ImageCollection, property_name: str, op: str,
                       value: Any) -> ee.ImageCollection:
    """
    Filter a collection on an image property.

    A misspelled property name does not raise on the server; it silently
    yields an empty collection. Use check_not_empty to catch that early.
    """
    return collection.filter(metadata_filter(property_name, op, value))


def combine_filters(filters: Sequence[ee.Filter], how: str = 'and') -> ee.Filter:
    """
    Combine filters with a logical AND or OR.
    """
    filters = list(filters)
    if not filters:
        raise ValueError("combine_filters needs at least one filter")
    how = how.lower()
    if how == 'and':
        return ee.Filter.And(*filters)
    if how == 'or':
        return ee.Filter.Or(*filters)
    raise ValueError(f"Unknown combination '{how}', use 'and' or 'or'")


def negate_filter(filter_: ee.Filter) -> ee.Filter:
    return filter_.Not()


def select_bands(obj, bands: Sequence[str], new_names: Optional[Sequence[str]] = None):
    """
    Select (and optionally rename) bands of an image or image collection.
    """
    bands = list(bands)
    if not bands:
        raise ValueError("Select at least one band")
    if new_names is None:
        return obj.select(bands)
    new_names = list(new_names)
    if len(new_names) != len(bands):
        raise ValueError(f"Got {len(bands)} bands but {len(new_names)} new names")
    return obj.select(bands, new_names)


def collection_to_list(collection: ee.ImageCollection, count: int) -> ee.List:
    """
    Convert the first ``count`` images of a collection to an ee.List.
    """
    if int(count) <= 0:
        raise ValueError(f"count must be positive, got {count}")
    return collection.toList(int(count))


def image_at(collection: ee.ImageCollection, index: int, count: Optional[int] = None) -> ee.Image:
    """
    Pick one image by position (collections have no random access, so go through a list).
    """
    if index < 0:
        raise ValueError(f"index must not be negative, got {index}")
    count = count if count is not None else index + 1
    if index >= count:
        raise ValueError(f"index {index} is outside the first {count} images")
    return ee.Image(collection_to_list(collection, count).get(index))


def collection_size(collection: ee.ImageCollection) -> int:
    """
    Number of images in the collection (one round trip).
    """
    try:
        return int(collection.size().getInfo())
    except ee.EEException as e:
        raise RuntimeError(f"Could not count collection images: {e}") from e


def check_not_empty(collection: ee.ImageCollection, description: str = "collection") -> int:
    """
    Raise if a filtered collection came back empty, return its size otherwise.
    """
    size = collection_size(collection)
    if size == 0:
        raise RuntimeError(
            f"No images left in {description}. Check the date range, region, "
            f"cloud threshold and the spelling of any metadata property names."
        )
    return size


def summarize_collection(collection: ee.ImageCollection, cloud_property: Optional[str] = None,
                         limit: int = 20) -> pd.DataFrame:
    """
    Fetch image ids, acquisition dates and cloud cover as a DataFrame.

    Parameters
    ----------
    collection : ee.ImageCollection
        Collection to summarize
    cloud_property : str, optional
        Cloud cover property of the collection (e.g. 'CLOUD_COVER')
    limit : int
        Maximum number of images fetched

    Returns
    -------
    pd.DataFrame
        Columns: id, date (YYYY-MM-DD), cloud_cover
    """
    selectors = ['system:index', 'system:time_start']
    if cloud_property:
        selectors.append(cloud_property)

    rows = (
        collection.limit(int(limit))
        .reduceColumns(ee.Reducer.toList(len(selectors)), selectors)
        .get('list')
        .getInfo()
    ) or []

    records = []
    for row in rows:
        image_id, time_start = row[0], row[1]
        cloud = row[2] if cloud_property and len(row) > 2 else None
        date = dt.datetime.fromtimestamp(time_start / 1000, tz=dt.timezone.utc).strftime('%Y-%m-%d') \
            if time_start is not None else None
        records.append({'id': image_id, 'date': date, 'cloud_cover': cloud})

    return pd.DataFrame(records, columns=['id', 'date', 'cloud_cover'])


def build_collection(dataset_config: Dict[str, Any], region=None) -> ee.ImageCollection:
    """
    Build a filtered collection from a config block.

    Recognised keys: ``sensor`` or ``collection``, ``date_range`` ([start, end]),
    ``months`` ([start, end]), ``max_cloud``, ``cloud_property``, ``bands`` and
    ``filters`` (list of {property, op, value}).

    Parameters
    ----------
    dataset_config : dict
        The block describing the collection
    region : ee.Geometry, optional
        Spatial filter applied with filterBounds

    Returns
    -------
    ee.ImageCollection
    """
    sensor = None
    if "sensor" in dataset_config:
        sensor = get_sensor(dataset_config["sensor"])
        collection = load_collection(sensor.collection_id)
    elif "collection" in dataset_config:
        collection = load_collection(dataset_config["collection"])
    else:
        raise ValueError("Collection config needs either 'sensor' or 'collection'")

    if region is not None:
        collection = filter_by_bounds(collection, region)
        logger.info("  Filtered to region bounds")

    date_range = dataset_config.get("date_range")
    if date_range:
        collection = filter_by_date(collection, date_range[0], date_range[1])
        logger.info("  Date range: %s to %s", date_range[0], date_range[1])

    months = dataset_config.get("months")
    if months:
        collection = filter_by_calendar(collection, months[0], months[1], 'month')
        logger.info("  Months: %s to %s", months[0], months[1])

    max_cloud = dataset_config.get("max_cloud")
    if max_cloud is not None:
        cloud_property = dataset_config.get("cloud_property") or (sensor.cloud_property if sensor else None)
        if not cloud_property:
            raise ValueError("max_cloud needs a cloud_property for collections outside the sensor catalog")
        collection = filter_by_metadata(collection, cloud_property, 'lt', float(max_cloud))
        logger.info("  %s < %s", cloud_property, max_cloud)

    for rule in dataset_config.get("filters", []) or []:
        collection = filter_by_metadata(collection, rule["property"], rule.get("op", "eq"), rule["value"])
        logger.info("  %s %s %s", rule["property"], rule.get("op", "eq"), rule["value"])

    bands = dataset_config.get("bands")
    if bands:
        collection = select_bands(collection, bands)
        logger.info("  Selected bands: %s", bands)

    return collection


def describe_filters(dataset_config: Dict[str, Any]) -> List[str]:
    """
    Human readable list of the filters a config block applies, for lesson output.
    """
    lines = []
    if dataset_config.get("date_range"):
        start, end = dataset_config["date_range"]
        lines.append(f"acquired between {start} and {end} (end exclusive)")
    if dataset_config.get("months"):
        start, end = dataset_config["months"]
        lines.append(f"in months {start}..{end} of every year")
    if dataset_config.get("max_cloud") is not None:
        lines.append(f"with less than {dataset_config['max_cloud']}% cloud cover")
    for rule in dataset_config.get("filters", []) or []:
        lines.append(f"where {rule['property']} {rule.get('op', 'eq')} {rule['value']}")
    return lines
