# src/spatiogrid/__init__.py

"""
spatiogrid - Region classification and grid density for spatial single-cell data
"""

# Core data structures
from .data.core import CellTable
from .data.config import SpatiogridConfig, SpatialData, GridMetadata, GridCache

# Import submodules
from . import data
from . import spatial

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'CellTable',
    'SpatiogridConfig',
    'SpatialData',
    'GridMetadata',
    'GridCache',

    # Submodules
    'data',
    'spatial',
]
