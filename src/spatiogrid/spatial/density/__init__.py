# src/spatiogrid/spatial/density/__init__.py

"""
Grid-based kernel density estimation per cell type.

Cells of each type are smoothed onto one shared pixel grid spanning all
cells, so density fields of different types are directly comparable.

Modules
-------
- grid: Grid sizing, pixel centres and the node table
- kernels: Kernel smoothing with edge correction
- bandwidth: Automatic bandwidth selection (Berman-Diggle, Scott)
- engine: grid_density, the per-cell-type driver

Quick Start
-----------
>>> import spatiogrid as sg
>>>
>>> density, info = sg.spatial.density.grid_density(ct, id_col='cell_type')
>>> info.dims                      # (ngrid_x, ngrid_y)
>>> info.bandwidth                 # reused by the next call
>>>
>>> # Second call reuses the stored bandwidth
>>> density, info = sg.spatial.density.grid_density(ct, coi='Tumor', ngrid_x=50)

Bandwidth
---------
Without an explicit bandwidth, the bandwidth stored by the previous call
is reused. If there is none, it is selected from all cell coordinates and
multiplied by AUTO_BANDWIDTH_SCALE. The selector is pluggable:

>>> sg.spatial.density.grid_density(ct, bandwidth_method='scott')
>>> sg.spatial.density.grid_density(ct, bandwidth_method=lambda c, xl, yl: 25.0)

Node ordering
-------------
Rows of the density table are column-major: node_x = 1..ngrid_x each
repeated ngrid_y times, node_y = 1..ngrid_y cycled, node = "x-y".
"""

from ...data.config import GridCache, GridMetadata

# Grid bookkeeping
from .grid import (
    NODE_COLUMNS,
    flatten_field,
    grid_nodes,
    make_grid,
    node_table,
    resolve_grid_dims,
)

# Kernel smoothing
from .kernels import (
    KERNELS,
    evaluate_kernel,
    kernel_density,
    kernel_support,
    smooth_points,
    window_mass,
)

# Bandwidth selection
from .bandwidth import (
    AUTO_BANDWIDTH_SCALE,
    BANDWIDTH_SELECTORS,
    bw_diggle,
    bw_scott,
    k_function,
    rmax_rule,
    select_bandwidth,
)

# Engine
from .engine import (
    DENSITY_PREFIX,
    density_column_names,
    grid_density,
)

__all__ = [
    # Containers
    'GridMetadata',
    'GridCache',

    # Grid
    'NODE_COLUMNS',
    'resolve_grid_dims',
    'make_grid',
    'node_table',
    'flatten_field',
    'grid_nodes',

    # Kernels
    'KERNELS',
    'evaluate_kernel',
    'kernel_support',
    'smooth_points',
    'window_mass',
    'kernel_density',

    # Bandwidth
    'AUTO_BANDWIDTH_SCALE',
    'BANDWIDTH_SELECTORS',
    'bw_diggle',
    'bw_scott',
    'k_function',
    'rmax_rule',
    'select_bandwidth',

    # Engine
    'DENSITY_PREFIX',
    'density_column_names',
    'grid_density',
]
