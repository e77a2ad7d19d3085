"""
Earth Engine Image Export Module

Creates, starts and monitors batch export tasks (Drive, Cloud Storage,
Earth Engine assets) and downloads small images directly.

Exports run asynchronously on Earth Engine's side: starting a task only
queues it. Use wait_for_task or task_status_table to follow it.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import ee
import pandas as pd
import requests

logger = logging.getLogger(__name__)


DESTINATIONS = ('drive', 'cloud_storage', 'asset')
FILE_FORMATS = ('GeoTIFF', 'TFRecord')

# Task states reported by task.status()['state']
ACTIVE_STATES = ('UNSUBMITTED', 'READY', 'RUNNING', 'CANCEL_REQUESTED')

MAX_DESCRIPTION_LENGTH = 100
_INVALID_DESCRIPTION_CHARS = re.compile(r'[^A-Za-z0-9.,:;_\-]')


def sanitize_description(text: str) -> str:
    """
    Make a string acceptable as a task description / file name prefix.

    Earth Engine allows letters, digits, '.', ',', ':', ';', '_' and '-'
    and at most 100 characters.
    """
    cleaned = _INVALID_DESCRIPTION_CHARS.sub('_', str(text).strip())
    cleaned = re.sub(r'_+', '_', cleaned).strip('_')
    if not cleaned:
        raise ValueError(f"Description {text!r} has no usable characters")
    return cleaned[:MAX_DESCRIPTION_LENGTH]


@dataclass
class ExportConfig:
    """
    Settings for one image export.

    ``scale`` is the pixel size in metres, ``crs`` the output projection and
    ``max_pixels`` the pixel-count ceiling; exports above it fail.
    """
    description: str
    destination: str = 'drive'
    folder: Optional[str] = None
    bucket: Optional[str] = None
    asset_id: Optional[str] = None
    file_name_prefix: Optional[str] = None
    scale: Optional[float] = 30
    crs: Optional[str] = 'EPSG:4326'
    crs_transform: Optional[List[float]] = None
    max_pixels: float = 1e13
    file_format: Optional[str] = 'GeoTIFF'
    extra: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Check the settings before a task is created.

        Raises
        ------
        ValueError
            If a setting is missing or out of range for the destination
        """
        if self.destination not in DESTINATIONS:
            raise ValueError(f"Unknown export destination '{self.destination}'. Use one of: {', '.join(DESTINATIONS)}")
        if self.destination == 'cloud_storage' and not self.bucket:
            raise ValueError("Cloud Storage exports need a bucket")
        if self.destination == 'asset':
            if not self.asset_id:
                raise ValueError("Asset exports need an asset_id (e.g. projects/<project>/assets/<name>)")
            if self.file_format:
                raise ValueError("Asset exports do not take a file_format")
        elif self.file_format not in FILE_FORMATS:
            raise ValueError(f"Unsupported file format '{self.file_format}'. Use one of: {', '.join(FILE_FORMATS)}")
        if self.scale is None and self.crs_transform is None:
            raise ValueError("Set either scale or crs_transform")
        if self.scale is not None and self.crs_transform is not None:
            raise ValueError("scale and crs_transform are mutually exclusive")
        if self.scale is not None and float(self.scale) <= 0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        if float(self.max_pixels) <= 0:
            raise ValueError(f"max_pixels must be positive, got {self.max_pixels}")
        sanitize_description(self.description)

    @property
    def prefix(self) -> str:
        return self.file_name_prefix or sanitize_description(self.description)

    def to_kwargs(self, image: ee.Image, region=None) -> Dict[str, Any]:
        """
        Keyword arguments for the matching ee.batch.Export.image.* call.
        """
        self.validate()
        kwargs: Dict[str, Any] = {
            'image': image,
            'description': sanitize_description(self.description),
            'maxPixels': int(float(self.max_pixels)),
        }
        if region is not None:
            kwargs['region'] = region
        if self.scale is not None:
            kwargs['scale'] = float(self.scale)
        if self.crs_transform is not None:
            kwargs['crsTransform'] = list(self.crs_transform)
        if self.crs:
            kwargs['crs'] = self.crs

        if self.destination == 'drive':
            if self.folder:
                kwargs['folder'] = self.folder
            kwargs['fileNamePrefix'] = self.prefix
            kwargs['fileFormat'] = self.file_format
        elif self.destination == 'cloud_storage':
            kwargs['bucket'] = self.bucket
            kwargs['fileNamePrefix'] = self.prefix
            kwargs['fileFormat'] = self.file_format
        else:
            kwargs['assetId'] = self.asset_id

        kwargs.update(self.extra)
        return kwargs

    @classmethod
    def from_config(cls, config: Dict[str, Any], description: str, **overrides) -> "ExportConfig":
        """
        Build an ExportConfig from the ``gee`` section of the loaded config.
        Keyword arguments override config values. A crs_transform without an
        explicit scale replaces the configured default scale.
        """
        gee_config = config.get("gee", {}) or {}
        values = {
            'description': description,
            'folder': gee_config.get("export_folder"),
            'scale': float(gee_config.get("default_scale", 30)),
            'crs': gee_config.get("crs", 'EPSG:4326'),
            'max_pixels': float(gee_config.get("max_pixels", 1e13)),
            'file_format': gee_config.get("file_format", 'GeoTIFF'),
        }
        if gee_config.get("export_bucket"):
            values['bucket'] = gee_config["export_bucket"]
        values.update(overrides)
        if overrides.get('crs_transform') is not None and 'scale' not in overrides:
            values['scale'] = None
        if values.get('destination') == 'asset' and 'file_format' not in overrides:
            values['file_format'] = None
        return cls(**values)


def create_export_task(image: ee.Image, region, export_config: ExportConfig) -> ee.batch.Task:
    """
    Create (but do not start) an export task.
    """
    kwargs = export_config.to_kwargs(image, region)
    exporters = {
        'drive': ee.batch.Export.image.toDrive,
        'cloud_storage': ee.batch.Export.image.toCloudStorage,
        'asset': ee.batch.Export.image.toAsset,
    }
    try:
        return exporters[export_config.destination](**kwargs)
    except ee.EEException as e:
        raise RuntimeError(f"Failed to create export task '{kwargs['description']}': {e}") from e


def start_task(task: ee.batch.Task) -> str:
    """
    Queue a task on Earth Engine and return its id.
    """
    try:
        task.start()
    except ee.EEException as e:
        raise RuntimeError(f"Failed to start export task: {e}") from e
    logger.info("Started export task %s", task.id)
    return task.id


def wait_for_task(task: ee.batch.Task, poll_interval: float = 10, timeout: float = 3600,
                  sleep: Callable[[float], None] = time.sleep,
                  clock: Callable[[], float] = time.monotonic) -> Dict[str, Any]:
    """
    Poll a started task until it finishes.

    Returns
    -------
    dict
        Final task.status() on COMPLETED

    Raises
    ------
    RuntimeError
        If the task fails or is cancelled
    TimeoutError
        If the task is still active after ``timeout`` seconds
    """
    start_time = clock()
    while True:
        status = task.status() or {}
        state = status.get('state')
        description = status.get('description', getattr(task, 'id', ''))
        if state == 'COMPLETED':
            logger.info("Export task completed: %s", description)
            return status
        if state in ('FAILED', 'CANCELLED'):
            logger.error("Export task %s: %s", state.lower(), status)
            message = status.get('error_message', 'no error message')
            raise RuntimeError(f"Export task '{description}' {state.lower()}: {message}")

        if clock() - start_time > timeout:
            raise TimeoutError(
                f"Export task '{description}' did not complete within {timeout} seconds; last state: {state}"
            )
        logger.debug("Export task %s is %s", description, state)
        sleep(poll_interval)


def _status_row(status: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': status.get('id'),
        'description': status.get('description', 'N/A'),
        'state': status.get('state', 'UNKNOWN'),
        'error': status.get('error_message'),
    }


def task_status_table(tasks: Optional[Sequence[ee.batch.Task]] = None, task_ids: Optional[Sequence[str]] = None,
                      limit: int = 20) -> pd.DataFrame:
    """
    Status of export tasks as a DataFrame (id, description, state, error).

    Parameters
    ----------
    tasks : list of ee.batch.Task, optional
        Tasks to report on. Defaults to the account's recent tasks.
    task_ids : list of str, optional
        Restrict the report to these ids
    limit : int
        Maximum number of rows
    """
    if tasks is None:
        try:
            tasks = ee.batch.Task.list()
        except ee.EEException as e:
            raise RuntimeError(f"Could not list Earth Engine tasks: {e}") from e

    rows = []
    wanted = set(task_ids) if task_ids else None
    for task in tasks:
        if len(rows) >= limit:
            break
        if wanted is not None and task.id not in wanted:
            continue
        rows.append(_status_row(task.status() or {}))

    return pd.DataFrame(rows, columns=['id', 'description', 'state', 'error'])


def summarize_states(table: pd.DataFrame) -> Dict[str, int]:
    """
    Count tasks per state, always including the common states.
    """
    counts = {state: 0 for state in ('COMPLETED', 'RUNNING', 'READY', 'FAILED', 'CANCELLED')}
    if not table.empty:
        for state, count in table['state'].value_counts().items():
            counts[state] = int(count)
    return counts


class ImageExporter:
    """
    Collects export tasks for a lesson or script and starts/monitors them together.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.tasks: List[ee.batch.Task] = []
        self.export_configs: List[ExportConfig] = []

    def add(self, image: ee.Image, description: str, region=None, **overrides) -> ee.batch.Task:
        """
        Create a task from the configured defaults plus overrides.
        """
        export_config = ExportConfig.from_config(self.config, description, **overrides)
        task = create_export_task(image, region, export_config)
        self.tasks.append(task)
        self.export_configs.append(export_config)
        logger.info(
            "Created export task %s -> %s (scale=%s, crs=%s)",
            export_config.description, export_config.destination, export_config.scale, export_config.crs,
        )
        return task

    def start_all(self) -> List[str]:
        """
        Start every created task and return the task ids.
        """
        if not self.tasks:
            raise ValueError("No tasks created. Call add() first.")
        return [start_task(task) for task in self.tasks]

    def wait_all(self, poll_interval: float = 10, timeout: float = 3600, **kwargs) -> List[Dict[str, Any]]:
        return [wait_for_task(task, poll_interval=poll_interval, timeout=timeout, **kwargs) for task in self.tasks]

    def expected_file_names(self) -> List[str]:
        """
        File names the Drive / Cloud Storage exports will produce (assets have none).
        """
        names = []
        for export_config in self.export_configs:
            if export_config.destination == 'asset':
                continue
            extension = '.tif' if export_config.file_format == 'GeoTIFF' else '.tfrecord.gz'
            names.append(f"{export_config.prefix}{extension}")
        return names


def download_image(image: ee.Image, output_path: Union[str, Path], region, scale: float = 30,
                   crs: str = 'EPSG:4326', file_format: str = 'GEO_TIFF', timeout: float = 300) -> Path:
    """
    Download a small image synchronously through getDownloadURL.

    Earth Engine caps direct downloads (about 32 MB / 10000 px per side);
    use an export task for anything larger.
    """
    params = {
        'region': region,
        'scale': scale,
        'crs': crs,
        'format': file_format,
    }
    try:
        url = image.getDownloadURL(params)
    except ee.EEException as e:
        raise RuntimeError(f"Failed to obtain download URL from Earth Engine: {e}") from e

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    response = requests.get(url, stream=True, timeout=timeout)
    try:
        response.raise_for_status()
        with open(output_path, 'wb') as f:
            for chunk in response.iter_content(chunk_size=1 << 16):
                if chunk:
                    f.write(chunk)
    finally:
        response.close()
    logger.info("Downloaded %s", output_path)
    return output_path
