"""
spatial - Spatial analysis for spatiogrid

Two complementary views of where cells are:

region : Region classification
    Assigns every cell to the polygonal region of interest containing its
    centroid. Discrete: one categorical label per cell.

density : Grid density estimation
    Smooths the centroids of each cell type onto a shared pixel grid.
    Continuous: one density field per cell type.

shared : Utilities shared across both approaches

Usage
-----
>>> import spatiogrid as sg
>>> from shapely.geometry import box
>>>
>>> # Region classification
>>> sg.spatial.region.cells_in_region(ct, {'1': box(0, 0, 50, 50)}, name_to='roi')
>>>
>>> # Grid density
>>> density, info = sg.spatial.density.grid_density(ct, id_col='cell_type')
"""

from . import shared
from . import region
from . import density

__all__ = [
    'shared',
    'region',
    'density',
]
