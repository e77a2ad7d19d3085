"""
Data Acquisition Module

Loading and filtering Earth Engine image collections and exporting results.
"""

from gee_primer.data.acquisition.catalog import SENSORS, SensorInfo, get_sensor
from gee_primer.data.acquisition.exporter import ExportConfig, ImageExporter

__all__ = ['SENSORS', 'SensorInfo', 'get_sensor', 'ExportConfig', 'ImageExporter']
