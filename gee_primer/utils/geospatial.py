"""
Geospatial Utility Functions

Helpers that turn plain coordinates and GeoJSON into Earth Engine geometries,
plus small coordinate checks and CRS lookups used when exporting.
"""

import json
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple, Union

import ee
from shapely.geometry import box, mapping, shape


BBox = Tuple[float, float, float, float]


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    Check that a latitude/longitude pair lies within WGS84 ranges.
    """
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def validate_bbox(bbox: Sequence[float]) -> BBox:
    """
    Validate a bounding box given as (min_lon, min_lat, max_lon, max_lat).

    Parameters
    ----------
    bbox : sequence of float
        West, south, east, north in degrees

    Returns
    -------
    tuple
        The bounding box as a tuple of floats

    Raises
    ------
    ValueError
        If the box does not have four values, lies outside WGS84 ranges,
        or has zero or negative extent
    """
    if len(bbox) != 4:
        raise ValueError(f"Bounding box must have 4 values (min_lon, min_lat, max_lon, max_lat), got {len(bbox)}")
    min_lon, min_lat, max_lon, max_lat = (float(v) for v in bbox)
    if not (validate_coordinates(min_lat, min_lon) and validate_coordinates(max_lat, max_lon)):
        raise ValueError(f"Bounding box outside WGS84 range: {bbox}")
    if min_lon >= max_lon or min_lat >= max_lat:
        raise ValueError(f"Bounding box has no extent: {bbox}")
    return (min_lon, min_lat, max_lon, max_lat)


def parse_bbox(text: str) -> BBox:
    """
    Parse a "min_lon,min_lat,max_lon,max_lat" string (as given on the command line).
    """
    parts = [p for p in text.replace(" ", "").split(",") if p]
    try:
        values = [float(p) for p in parts]
    except ValueError as e:
        raise ValueError(f"Bounding box must contain numbers only: {text!r}") from e
    return validate_bbox(values)


def bbox_to_geometry(bbox: Sequence[float]) -> ee.Geometry:
    """
    Build an ee.Geometry.Rectangle from a bounding box in degrees.
    """
    min_lon, min_lat, max_lon, max_lat = validate_bbox(bbox)
    return ee.Geometry.Rectangle([min_lon, min_lat, max_lon, max_lat])


def point_buffer(lat: float, lon: float, radius_km: float) -> ee.Geometry:
    """
    Create a circular region around a point, buffered on the server in metres.
    """
    if not validate_coordinates(lat, lon):
        raise ValueError(f"Invalid coordinates: ({lat}, {lon})")
    if radius_km <= 0:
        raise ValueError(f"Radius must be positive, got {radius_km}")
    return ee.Geometry.Point([lon, lat]).buffer(radius_km * 1000)


def load_geojson(source: Union[str, Path, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Load a GeoJSON geometry from a file path or dict and normalize it.

    Features and single-feature FeatureCollections are unwrapped to their
    geometry. The geometry is checked with shapely before it is sent to
    Earth Engine.
    """
    if isinstance(source, (str, Path)):
        with open(source, 'r', encoding='utf-8') as f:
            data = json.load(f)
    else:
        data = source

    if data.get("type") == "FeatureCollection":
        features = data.get("features", [])
        if len(features) != 1:
            raise ValueError(f"Expected exactly one feature, got {len(features)}")
        data = features[0]
    if data.get("type") == "Feature":
        data = data.get("geometry") or {}

    geom = shape(data)
    if geom.is_empty:
        raise ValueError("GeoJSON geometry is empty")
    if not geom.is_valid:
        raise ValueError("GeoJSON geometry is not valid (self-intersecting or malformed)")
    return mapping(geom)


def geojson_to_geometry(source: Union[str, Path, Dict[str, Any]]) -> ee.Geometry:
    """
    Convert a GeoJSON file or mapping to an ee.Geometry.
    """
    return ee.Geometry(load_geojson(source))


def region_from_config(config: Dict[str, Any]) -> ee.Geometry:
    """
    Build the lesson region from config: region.geojson takes precedence over region.bbox.
    """
    region_config = config.get("region", {}) or {}
    if region_config.get("geojson"):
        return geojson_to_geometry(region_config["geojson"])
    bbox = region_config.get("bbox")
    if bbox is None:
        raise ValueError("No region configured. Set region.bbox or region.geojson in config.yaml")
    if isinstance(bbox, str):
        bbox = parse_bbox(bbox)
    return bbox_to_geometry(bbox)


def bbox_center(bbox: Sequence[float]) -> Tuple[float, float]:
    """
    Return the (lat, lon) centre of a bounding box, for centring maps.
    """
    centroid = box(*validate_bbox(bbox)).centroid
    return (centroid.y, centroid.x)


def get_utm_zone(lon: float, lat: float) -> int:
    """
    Get UTM zone number for given coordinates.
    """
    if lon == 180:
        lon = 179.999999
    return int((lon + 180) / 6) + 1


def get_utm_crs(lon: float, lat: float) -> str:
    """
    Get UTM CRS string for given coordinates.

    Returns
    -------
    str
        UTM CRS string (e.g., 'EPSG:32610' for San Francisco)
    """
    utm_zone = get_utm_zone(lon, lat)
    if lat < 0:
        return f'EPSG:{32700 + utm_zone}'
    return f'EPSG:{32600 + utm_zone}'
