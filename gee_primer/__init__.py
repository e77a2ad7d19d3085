"""
GEE Primer
Lessons on filtering, index computation, map/reduce and export with the
Google Earth Engine Python API.

Modules:
    - data.acquisition: sensor catalog, collection filters, export tasks
    - analysis: spectral indices, cloud masks, reducers
    - visualization: Earth Engine layers on Folium maps
    - lessons: the tutorial lessons and their runner
    - utils: configuration, logging, Earth Engine initialization
"""

__version__ = "0.1.0"
