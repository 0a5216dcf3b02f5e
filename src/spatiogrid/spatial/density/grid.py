"""
grid.py - Pixel grid bookkeeping for grid density estimation

The grid covers the bounding box of all cells and is split into
ngrid_x columns by ngrid_y rows. Values are sampled at pixel centres.

Density images have shape (ngrid_y, ngrid_x). They are flattened
column-major, so the row index varies fastest, matching node_table():

    node_x = 1, 1, ..., 1, 2, 2, ..., ngrid_x      (each repeated ngrid_y times)
    node_y = 1, 2, ..., ngrid_y, 1, 2, ...         (cycled ngrid_x times)
    node   = "{node_x}-{node_y}"
"""

from typing import Optional, Tuple
import math
import numpy as np
import pandas as pd

from ...data.config import GridMetadata, ValidationError

NODE_COLUMNS = ['x_grid', 'y_grid', 'node_x', 'node_y', 'node']


def _check_positive(value, name: str) -> float:
    if value is None or not np.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be a positive number, got {value}")
    return float(value)


def resolve_grid_dims(xlim: Tuple[float, float],
                      ylim: Tuple[float, float],
                      ngrid_x: int = 100,
                      ngrid_y: Optional[int] = None,
                      grid_length_x: Optional[float] = None,
                      grid_length_y: Optional[float] = None) -> Tuple[int, int]:
    """
    Work out the number of grid columns and rows.

    A physical grid length overrides the corresponding count. Without any
    y setting, the y length of a given grid_length_x is reused, otherwise
    ngrid_y follows the aspect ratio of the extent.

    Parameters
    ----------
    xlim, ylim : tuple of float
        Extent of the domain
    ngrid_x : int, default=100
        Number of grid columns
    ngrid_y : int, optional
        Number of grid rows
    grid_length_x, grid_length_y : float, optional
        Pixel side lengths in coordinate units

    Returns
    -------
    (ngrid_x, ngrid_y)
    """
    width = float(xlim[1] - xlim[0])
    height = float(ylim[1] - ylim[0])

    if not (width > 0 and height > 0):
        raise ValidationError(
            f"Cell coordinates span a degenerate extent ({width} × {height}); "
            "grid density needs cells spread in both x and y"
        )

    if grid_length_x is not None:
        ngrid_x = math.ceil(width / _check_positive(grid_length_x, 'grid_length_x'))

    if grid_length_y is not None:
        ngrid_y = math.ceil(height / _check_positive(grid_length_y, 'grid_length_y'))
    elif ngrid_y is None:
        if grid_length_x is not None:
            ngrid_y = math.ceil(height / grid_length_x)
        else:
            ngrid_y = math.ceil(_check_positive(ngrid_x, 'ngrid_x') * height / width)

    ngrid_x = int(_check_positive(ngrid_x, 'ngrid_x'))
    ngrid_y = int(_check_positive(ngrid_y, 'ngrid_y'))

    return max(ngrid_x, 1), max(ngrid_y, 1)


def make_grid(xlim: Tuple[float, float],
              ylim: Tuple[float, float],
              ngrid_x: int,
              ngrid_y: int,
              bandwidth: Optional[float] = None,
              kernel: str = 'gaussian',
              diggle: bool = False) -> GridMetadata:
    """
    Build the grid description with pixel-centre coordinates.

    Returns
    -------
    GridMetadata
    """
    xstep = (xlim[1] - xlim[0]) / ngrid_x
    ystep = (ylim[1] - ylim[0]) / ngrid_y

    xcol = xlim[0] + (np.arange(ngrid_x) + 0.5) * xstep
    yrow = ylim[0] + (np.arange(ngrid_y) + 0.5) * ystep

    return GridMetadata(
        dims=(int(ngrid_x), int(ngrid_y)),
        xlim=(float(xlim[0]), float(xlim[1])),
        ylim=(float(ylim[0]), float(ylim[1])),
        xcol=xcol,
        yrow=yrow,
        xstep=float(xstep),
        ystep=float(ystep),
        bandwidth=bandwidth,
        kernel=kernel,
        diggle=diggle,
    )


def node_table(grid: GridMetadata) -> pd.DataFrame:
    """
    One row per grid node, in column-major node order.

    Columns: x_grid, y_grid (pixel centre), node_x, node_y (1-based
    column/row) and node ("{node_x}-{node_y}").
    """
    nx, ny = grid.dims

    node_x = np.repeat(np.arange(1, nx + 1), ny)
    node_y = np.tile(np.arange(1, ny + 1), nx)

    return pd.DataFrame({
        'x_grid': np.repeat(grid.xcol, ny),
        'y_grid': np.tile(grid.yrow, nx),
        'node_x': node_x,
        'node_y': node_y,
        'node': [f"{i}-{j}" for i, j in zip(node_x, node_y)],
    })


def flatten_field(field: np.ndarray) -> np.ndarray:
    """Flatten an (ngrid_y, ngrid_x) image into node_table() order."""
    return np.asarray(field).ravel(order='F')


def grid_nodes(grid: GridMetadata) -> np.ndarray:
    """Pixel centres as an (ngrid_y * ngrid_x, 2) array in row-major image order."""
    xx, yy = np.meshgrid(grid.xcol, grid.yrow)
    return np.column_stack([xx.ravel(), yy.ravel()])
