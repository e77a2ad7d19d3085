"""
Visualization module for Earth Engine layers on interactive maps.
"""

from gee_primer.visualization.folium_map import MapLayer, add_ee_layer, create_lesson_map

__all__ = ['MapLayer', 'add_ee_layer', 'create_lesson_map']
