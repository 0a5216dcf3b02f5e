"""
region - Classify cells into polygonal regions of interest

Regions are shapely Polygons or MultiPolygons (holes allowed). Each
cell centroid is tested with a spatial-index join; boundary points count
as inside; later regions win where regions overlap.

Typical workflow
----------------
>>> import spatiogrid as sg
>>> from shapely.geometry import box
>>>
>>> rois = {'1': box(0, 0, 500, 500), '2': box(400, 400, 1000, 1000)}
>>> sg.spatial.region.cells_in_region(ct, rois, name_to='roi')
>>> ct.cell_meta['roi'].cat.categories   # ['0', '1', '2']
"""

from .classify import (
    LEVEL_ORDERS,
    assign_regions,
    cells_in_region,
    normalize_regions,
    order_levels,
    validate_regions,
)

__all__ = [
    "cells_in_region",
    "normalize_regions",
    "validate_regions",
    "assign_regions",
    "order_levels",
    "LEVEL_ORDERS",
]
