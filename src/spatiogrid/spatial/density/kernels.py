"""
kernels.py - Kernel smoothing of point patterns onto a pixel grid

All kernels are isotropic and scaled so that `sigma` is the standard
deviation of each coordinate of the kernel:

    gaussian       unbounded support
    epanechnikov   support radius sqrt(6) * sigma
    quartic        support radius sqrt(8) * sigma
    disc           support radius 2 * sigma

Output is an intensity (expected points per unit area). Edge correction
divides out the kernel mass that falls outside the observation window:

- edge=True, diggle=False: uniform correction, each pixel divided by the
  window mass of a kernel centred at that pixel
- edge=True, diggle=True: Jones-Diggle correction, each point weighted
  by 1 / window mass of a kernel centred at that point
"""

from typing import Optional
import numpy as np
from scipy.spatial import cKDTree
from scipy.special import ndtr

from ...data.config import GridMetadata, ValidationError
from ..shared.utils import safe_divide
from .grid import grid_nodes

KERNELS = ('gaussian', 'epanechnikov', 'quartic', 'disc')

_SUPPORT_FACTOR = {
    'epanechnikov': np.sqrt(6.0),
    'quartic': np.sqrt(8.0),
    'disc': 2.0,
}


def check_kernel(kernel: str) -> str:
    """Return `kernel` if it is supported, else raise ValidationError."""
    if kernel not in KERNELS:
        raise ValidationError(f"Unknown kernel: {kernel}. Choose from {KERNELS}")
    return kernel


def kernel_support(kernel: str, sigma: float) -> float:
    """Support radius of the kernel (np.inf for gaussian)."""
    check_kernel(kernel)
    if kernel == 'gaussian':
        return np.inf
    return float(_SUPPORT_FACTOR[kernel] * sigma)


def evaluate_kernel(r: np.ndarray, sigma: float, kernel: str = 'gaussian') -> np.ndarray:
    """
    Radial kernel value at distance r. Each kernel integrates to 1 over the plane.

    Parameters
    ----------
    r : np.ndarray
        Distances from the kernel centre
    sigma : float
        Per-coordinate standard deviation
    kernel : str
        One of KERNELS
    """
    r = np.asarray(r, dtype=np.float64)
    check_kernel(kernel)

    if kernel == 'gaussian':
        return np.exp(-0.5 * (r / sigma) ** 2) / (2 * np.pi * sigma ** 2)

    h = kernel_support(kernel, sigma)
    inside = r <= h
    u2 = (r / h) ** 2

    if kernel == 'epanechnikov':
        values = 2.0 / (np.pi * h ** 2) * (1 - u2)
    elif kernel == 'quartic':
        values = 3.0 / (np.pi * h ** 2) * (1 - u2) ** 2
    else:
        values = np.full_like(r, 1.0 / (np.pi * h ** 2))

    return np.where(inside, values, 0.0)


# ========== Smoothing ==========

def _gaussian_smooth(coords: np.ndarray,
                     weights: np.ndarray,
                     grid: GridMetadata,
                     sigma: float,
                     chunk_size: int = 5000) -> np.ndarray:
    """Separable Gaussian sum at pixel centres, accumulated in point chunks."""
    nx, ny = grid.dims
    field = np.zeros((ny, nx), dtype=np.float64)
    norm = np.sqrt(2 * np.pi) * sigma

    for start in range(0, len(coords), chunk_size):
        chunk = coords[start:start + chunk_size]
        w = weights[start:start + chunk_size]

        kx = np.exp(-0.5 * ((grid.xcol[None, :] - chunk[:, 0:1]) / sigma) ** 2) / norm
        ky = np.exp(-0.5 * ((grid.yrow[None, :] - chunk[:, 1:2]) / sigma) ** 2) / norm

        field += (ky * w[:, None]).T @ kx

    return field


# Upper bound on neighbour pairs held in memory at once
MAX_PAIRS = 1_000_000


def _iter_chunks(n_items: int, n_nodes: int):
    """Slices over `n_items` so that each slice has at most MAX_PAIRS item-node pairs."""
    step = max(1, MAX_PAIRS // max(n_nodes, 1))
    for start in range(0, n_items, step):
        yield slice(start, min(start + step, n_items))


def _compact_kernel_sum(centres: np.ndarray,
                        weights: np.ndarray,
                        node_tree: cKDTree,
                        sigma: float,
                        kernel: str,
                        to_nodes: bool) -> np.ndarray:
    """
    Sum compact kernels over centre-node pairs within the support radius.

    to_nodes=True accumulates onto nodes (one value per node),
    to_nodes=False accumulates onto centres (one value per centre).
    Centres are processed in chunks so peak memory stays bounded.
    """
    h = kernel_support(kernel, sigma)
    n_nodes = node_tree.n
    total = np.zeros(n_nodes if to_nodes else len(centres), dtype=np.float64)

    for chunk in _iter_chunks(len(centres), n_nodes):
        centre_tree = cKDTree(centres[chunk])
        pairs = centre_tree.sparse_distance_matrix(node_tree, h, output_type='ndarray')
        if len(pairs) == 0:
            continue

        values = evaluate_kernel(pairs['v'], sigma, kernel) * weights[chunk][pairs['i']]
        if to_nodes:
            total += np.bincount(pairs['j'], weights=values, minlength=n_nodes)
        else:
            total[chunk] += np.bincount(
                pairs['i'], weights=values, minlength=chunk.stop - chunk.start
            )

    return total


def _compact_smooth(coords: np.ndarray,
                    weights: np.ndarray,
                    grid: GridMetadata,
                    sigma: float,
                    kernel: str) -> np.ndarray:
    """Compact-support kernel sum at pixel centres using KD-tree neighbour pairs."""
    nx, ny = grid.dims
    node_tree = cKDTree(grid_nodes(grid))
    field = _compact_kernel_sum(coords, weights, node_tree, sigma, kernel, to_nodes=True)
    return field.reshape(ny, nx)


def smooth_points(coords: np.ndarray,
                  grid: GridMetadata,
                  sigma: float,
                  kernel: str = 'gaussian',
                  weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Sum of weighted kernels centred on each point, sampled at pixel centres.

    Returns
    -------
    np.ndarray
        Image of shape (ngrid_y, ngrid_x)
    """
    coords = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
    nx, ny = grid.dims

    if weights is None:
        weights = np.ones(len(coords))
    weights = np.asarray(weights, dtype=np.float64)

    if len(coords) == 0:
        return np.zeros((ny, nx), dtype=np.float64)

    if kernel == 'gaussian':
        return _gaussian_smooth(coords, weights, grid, sigma)
    return _compact_smooth(coords, weights, grid, sigma, check_kernel(kernel))


# ========== Edge correction ==========

def window_mass(locations: np.ndarray,
                grid: GridMetadata,
                sigma: float,
                kernel: str = 'gaussian') -> np.ndarray:
    """
    Fraction of a kernel centred at each location that lies inside the window.

    Exact for the Gaussian kernel (product of normal CDF differences);
    for compact kernels the kernel is summed over pixel centres.

    Parameters
    ----------
    locations : np.ndarray
        (m, 2) kernel centres

    Returns
    -------
    np.ndarray
        Values in (0, 1], shape (m,)
    """
    locations = np.asarray(locations, dtype=np.float64).reshape(-1, 2)
    check_kernel(kernel)

    if kernel == 'gaussian':
        (x0, x1), (y0, y1) = grid.xlim, grid.ylim
        mx = ndtr((x1 - locations[:, 0]) / sigma) - ndtr((x0 - locations[:, 0]) / sigma)
        my = ndtr((y1 - locations[:, 1]) / sigma) - ndtr((y0 - locations[:, 1]) / sigma)
        mass = mx * my
    else:
        node_tree = cKDTree(grid_nodes(grid))
        mass = _compact_kernel_sum(
            locations, np.ones(len(locations)), node_tree, sigma, kernel, to_nodes=False
        ) * grid.xstep * grid.ystep

    # Pixel sums can overshoot 1 for kernels narrower than a pixel
    mass = np.minimum(mass, 1.0)
    return np.where(mass > 0, mass, 1.0)


def kernel_density(coords: np.ndarray,
                   grid: GridMetadata,
                   sigma: float,
                   kernel: str = 'gaussian',
                   edge: bool = True,
                   diggle: bool = False,
                   weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Kernel intensity estimate of a point pattern on a pixel grid.

    Parameters
    ----------
    coords : np.ndarray
        (n, 2) point coordinates inside the grid window
    grid : GridMetadata
        Target grid
    sigma : float
        Kernel bandwidth (per-coordinate standard deviation)
    kernel : str, default='gaussian'
        One of KERNELS
    edge : bool, default=True
        Apply edge correction
    diggle : bool, default=False
        Use Jones-Diggle edge correction instead of uniform correction
        (only when edge=True)
    weights : np.ndarray, optional
        Point weights (default 1 per point)

    Returns
    -------
    np.ndarray
        Non-negative intensity image of shape (ngrid_y, ngrid_x)
    """
    check_kernel(kernel)
    if not np.isfinite(sigma) or sigma <= 0:
        raise ValidationError(f"Bandwidth must be a positive number, got {sigma}")

    coords = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
    if weights is None:
        weights = np.ones(len(coords))
    weights = np.asarray(weights, dtype=np.float64)

    if edge and diggle and len(coords) > 0:
        weights = weights / window_mass(coords, grid, sigma, kernel)

    field = smooth_points(coords, grid, sigma, kernel, weights)

    if edge and not diggle and len(coords) > 0:
        nx, ny = grid.dims
        pixel_mass = window_mass(grid_nodes(grid), grid, sigma, kernel).reshape(ny, nx)
        field = safe_divide(field, pixel_mass)

    # Rounding in the sums can leave tiny negatives
    return np.clip(np.nan_to_num(field), 0.0, None)
