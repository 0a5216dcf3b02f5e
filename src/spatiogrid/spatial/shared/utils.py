# src/spatiogrid/spatial/shared/utils.py

"""
utils.py - Shared utilities for spatial analysis

Common functions used by both the region classifier and the grid
density engine.
"""
from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spatiogrid.data.core import CellTable

from typing import Dict, Iterable, List
import re
import unicodedata
import numpy as np


_CAMEL_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^0-9a-zA-Z]+")


def validate_spatial_data(sp: 'CellTable') -> Dict[str, bool]:
    """
    Validate that a CellTable has usable centroid coordinates.

    Parameters
    ----------
    sp : CellTable
        CellTable object to validate

    Returns
    -------
    dict
        Validation results with keys:
        - has_coords: bool (at least one finite coordinate pair)
        - coords_valid: bool (every coordinate pair finite)
        - overall: bool (all checks passed)

    Examples
    --------
    >>> valid = sg.spatial.shared.validate_spatial_data(ct)
    >>> if not valid['overall']:
    ...     print("Some cells have no coordinates")
    """
    results = {}

    coords = sp.get_spatial_coords()
    finite = np.isfinite(coords).all(axis=1)

    results['has_coords'] = bool(finite.any())
    results['coords_valid'] = bool(finite.all())
    results['overall'] = results['has_coords'] and results['coords_valid']

    if not results['coords_valid']:
        print(f"  ⚠ {int((~finite).sum()):,} / {len(coords):,} cells have missing coordinates")

    return results


def calculate_spatial_extent(sp: 'CellTable') -> Dict[str, float]:
    """
    Calculate spatial extent (bounding box) of all cells.

    Parameters
    ----------
    sp : CellTable
        CellTable object

    Returns
    -------
    dict
        Bounding box with keys: xmin, xmax, ymin, ymax, width, height, area

    Examples
    --------
    >>> extent = sg.spatial.shared.calculate_spatial_extent(ct)
    >>> print(f"Tissue size: {extent['width']} × {extent['height']}")
    """
    coords = sp.get_spatial_coords()

    if not np.isfinite(coords).all():
        raise ValueError("Cannot compute spatial extent: some cells have missing coordinates")

    extent = {
        'xmin': float(coords[:, 0].min()),
        'xmax': float(coords[:, 0].max()),
        'ymin': float(coords[:, 1].min()),
        'ymax': float(coords[:, 1].max()),
    }

    extent['width'] = extent['xmax'] - extent['xmin']
    extent['height'] = extent['ymax'] - extent['ymin']
    extent['area'] = extent['width'] * extent['height']

    return extent


def clean_name(label) -> str:
    """
    Turn a label into a lowercase identifier-safe name.

    camelCase boundaries become underscores, runs of anything that is not
    a letter or digit collapse to a single underscore, and a leading digit
    gets an 'x' prefix.

    Parameters
    ----------
    label : str or any
        Label to clean (non-strings are converted with str())

    Returns
    -------
    str

    Examples
    --------
    >>> clean_name('TypeA')
    'type_a'
    >>> clean_name('CD4+ T cells')
    'cd4_t_cells'
    >>> clean_name('3 prime')
    'x3_prime'
    """
    text = unicodedata.normalize('NFKD', str(label)).encode('ascii', 'ignore').decode('ascii')
    text = text.replace('%', '_percent_').replace('#', '_number_')
    text = _CAMEL_ACRONYM.sub(r'\1_\2', text)
    text = _CAMEL_BOUNDARY.sub(r'\1_\2', text)
    text = _NON_ALNUM.sub('_', text).strip('_').lower()

    if not text:
        return 'x'
    if text[0].isdigit():
        text = 'x' + text
    return text


def clean_names(labels: Iterable) -> List[str]:
    """Apply clean_name to every label, keeping order (duplicates are kept)."""
    return [clean_name(label) for label in labels]


def safe_divide(numerator: np.ndarray,
                denominator: np.ndarray,
                fill_value: float = 0.0) -> np.ndarray:
    """
    Safely divide arrays, handling division by zero.

    Parameters
    ----------
    numerator : np.ndarray
        Numerator values
    denominator : np.ndarray
        Denominator values
    fill_value : float, default=0.0
        Value to use when denominator is zero

    Returns
    -------
    np.ndarray
        Result of division
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        result = np.asarray(numerator, dtype=np.float64) / denominator
        result = np.atleast_1d(result)
        result[~np.isfinite(result)] = fill_value

    return result
