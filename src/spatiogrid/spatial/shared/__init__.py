# src/spatiogrid/spatial/shared/__init__.py

"""
Shared utilities for spatial analysis.

Common functions used by the region classifier and the density engine.
"""

from .utils import (
    # Validation
    validate_spatial_data,

    # Coordinate utilities
    calculate_spatial_extent,

    # Naming
    clean_name,
    clean_names,

    # Numeric utilities
    safe_divide,
)

__all__ = [
    # Validation
    'validate_spatial_data',

    # Coordinate utilities
    'calculate_spatial_extent',

    # Naming
    'clean_name',
    'clean_names',

    # Numeric utilities
    'safe_divide',
]
