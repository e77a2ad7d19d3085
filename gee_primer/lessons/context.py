"""
Lesson context and narration helpers shared by all lessons.
"""

import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import ee

from gee_primer.data.acquisition.catalog import SensorInfo, get_sensor
from gee_primer.data.acquisition.collections import build_collection
from gee_primer.utils.geospatial import bbox_center, parse_bbox, region_from_config, validate_bbox


RULE = "=" * 60
THIN_RULE = "-" * 60


def banner(title: str) -> None:
    print(f"\n{RULE}\n{title}\n{RULE}")


def section(title: str) -> None:
    print(f"\n{THIN_RULE}\n{title}\n{THIN_RULE}")


def narrate(text: str) -> None:
    """Print a block of tutorial text, dedented."""
    print(textwrap.dedent(text).strip("\n"))


@dataclass
class LessonContext:
    """Everything a lesson needs: config, region, sensor and date window."""
    config: Dict[str, Any]
    region: Any
    sensor: SensorInfo
    start_date: str
    end_date: str
    months: Tuple[int, int] = (6, 8)
    max_cloud: float = 20.0
    list_limit: int = 5
    reducer: str = 'median'
    indices: List[str] = field(default_factory=lambda: ['NDVI'])
    output_dir: Path = Path('output/maps')
    download_dir: Path = Path('output/downloads')
    bbox: Optional[Tuple[float, float, float, float]] = None
    export: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any], output_dir: Path, export: bool = False,
                    download_dir: Optional[Path] = None) -> "LessonContext":
        """
        Build the context from the ``lessons`` and ``region`` config sections.
        Call after Earth Engine is initialized (the region is an ee.Geometry).
        """
        lessons = config.get("lessons", {}) or {}
        region_config = config.get("region", {}) or {}

        bbox = None if region_config.get("geojson") else region_config.get("bbox")
        if isinstance(bbox, str):
            bbox = parse_bbox(bbox)
        elif bbox is not None:
            bbox = validate_bbox(bbox)

        months = lessons.get("months") or (6, 8)
        if isinstance(months, str):
            months = [int(m) for m in months.split(",")]
        if len(months) != 2:
            raise ValueError(f"lessons.months must be [start, end], got {months}")

        indices = lessons.get("indices") or ['NDVI']
        if isinstance(indices, str):
            indices = [i.strip() for i in indices.split(",") if i.strip()]

        return cls(
            config=config,
            region=region_from_config(config),
            sensor=get_sensor(lessons.get("sensor", "sentinel2")),
            start_date=str(lessons.get("start_date", "2023-01-01")),
            end_date=str(lessons.get("end_date", "2024-01-01")),
            months=(int(months[0]), int(months[1])),
            max_cloud=float(lessons.get("max_cloud", 20)),
            list_limit=int(lessons.get("list_limit", 5)),
            reducer=str(lessons.get("reducer", "median")),
            indices=list(indices),
            output_dir=Path(output_dir),
            download_dir=Path(download_dir) if download_dir is not None else Path(output_dir).parent / 'downloads',
            bbox=bbox,
            export=export,
        )

    def dataset_config(self, **extra) -> Dict[str, Any]:
        """Config block for build_collection with this context's filters."""
        block = {
            'sensor': self.sensor.name,
            'date_range': [self.start_date, self.end_date],
            'max_cloud': self.max_cloud,
        }
        block.update(extra)
        return block

    def filtered_collection(self) -> ee.ImageCollection:
        """Sensor collection filtered to region, date window and cloud threshold."""
        return build_collection(self.dataset_config(), region=self.region)

    def least_cloudy_image(self) -> ee.Image:
        return self.filtered_collection().sort(self.sensor.cloud_property).first()

    @property
    def analysis_scale(self) -> float:
        """Scale for regional statistics; coarser than native keeps requests fast."""
        return float(self.sensor.native_scale * 10)

    @property
    def center(self) -> Tuple[float, float]:
        """(lat, lon) map centre."""
        if self.bbox is not None:
            return bbox_center(self.bbox)
        lon, lat = self.region.centroid(1).coordinates().getInfo()
        return (lat, lon)
