"""
data - Core data structures

This module contains the CellTable data structure, configuration
classes, grid state containers and the exception hierarchy.
"""

from .config import (
    SpatiogridConfig,
    SpatialData,
    GridMetadata,
    GridCache,
    SpatiogridError,
    ConsistencyError,
    ValidationError,
    InvalidRegionGeometry,
    MissingNaLabel,
    UnknownColumn,
    UnknownCellType,
    NonNumericLevelOrdering,
    ColumnNamingCollision,
)

from .core import CellTable

__all__ = [
    # Core class
    'CellTable',

    # Configuration
    'SpatiogridConfig',
    'SpatialData',

    # Grid state
    'GridMetadata',
    'GridCache',

    # Exceptions
    'SpatiogridError',
    'ConsistencyError',
    'ValidationError',
    'InvalidRegionGeometry',
    'MissingNaLabel',
    'UnknownColumn',
    'UnknownCellType',
    'NonNumericLevelOrdering',
    'ColumnNamingCollision',
]
