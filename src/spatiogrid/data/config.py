"""
config.py - Configuration, coordinate storage and errors for spatiogrid

Contains:
- SpatiogridConfig: Column name settings
- SpatialData: Efficient cell centroid storage
- GridMetadata / GridCache: Grid description and reusable density state
- Exception hierarchy raised by the region and density tools
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import pandas as pd


@dataclass
class SpatiogridConfig:
    """Configuration for spatiogrid column names."""

    # Column names
    cell_id_col: str = "cell"
    x_col: str = "x_centroid"
    y_col: str = "y_centroid"
    cell_type_col: str = "cell_type"

    def get_coordinate_columns(self) -> tuple[str, str]:
        """
        Get x, y column names for cell centroids.

        Returns
        -------
        Tuple[str, str]
            (x_column, y_column)
        """
        return self.x_col, self.y_col


@dataclass
class SpatialData:
    """
    Efficient container for cell centroid coordinates.

    Uses numpy arrays for fast computation.
    """

    x: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return len(self.x)

    def __post_init__(self):
        """Validate both arrays have same length."""
        self.x = np.asarray(self.x, dtype=np.float64)
        self.y = np.asarray(self.y, dtype=np.float64)
        if len(self.x) != len(self.y):
            raise ValueError(f"Coordinate arrays have different lengths: {[len(self.x), len(self.y)]}")

    def subset(self, indices: np.ndarray) -> "SpatialData":
        """
        Efficiently subset by integer indices.

        Parameters
        ----------
        indices : np.ndarray
            Integer indices to keep

        Returns
        -------
        SpatialData
            New SpatialData with subset
        """
        return SpatialData(x=self.x[indices], y=self.y[indices])

    def as_array(self) -> np.ndarray:
        """Stack into an (n_cells, 2) array."""
        return np.column_stack([self.x, self.y])

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dataframe(cls, df, config: SpatiogridConfig) -> "SpatialData":
        """
        Create from DataFrame.

        Parameters
        ----------
        df : pd.DataFrame
            DataFrame with coordinate columns
        config : SpatiogridConfig
            Configuration with column names

        Returns
        -------
        SpatialData
        """
        x_col, y_col = config.get_coordinate_columns()
        missing = [col for col in (x_col, y_col) if col not in df.columns]
        if missing:
            raise UnknownColumn(missing[0], "spatial coordinates")

        return cls(x=df[x_col].values, y=df[y_col].values)


@dataclass
class GridMetadata:
    """
    Description of the pixel grid used for kernel density estimation.

    Node (col, row) is 1-based; the composite node key is "{col}-{row}".
    """

    dims: tuple[int, int]  # (ngrid_x, ngrid_y)
    xlim: tuple[float, float]
    ylim: tuple[float, float]
    xcol: np.ndarray
    yrow: np.ndarray
    xstep: float
    ystep: float
    bandwidth: float | None = None
    kernel: str = "gaussian"
    diggle: bool = False
    density_columns: dict = field(default_factory=dict)

    @property
    def ngrid_x(self) -> int:
        return self.dims[0]

    @property
    def ngrid_y(self) -> int:
        return self.dims[1]

    @property
    def n_nodes(self) -> int:
        return self.dims[0] * self.dims[1]

    def node_keys(self) -> list[str]:
        """Node keys in column-major order (row index varies fastest)."""
        return [f"{i}-{j}" for i in range(1, self.ngrid_x + 1) for j in range(1, self.ngrid_y + 1)]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "dims": self.dims,
            "xlim": self.xlim,
            "ylim": self.ylim,
            "xcol": self.xcol,
            "yrow": self.yrow,
            "xstep": self.xstep,
            "ystep": self.ystep,
            "bandwidth": self.bandwidth,
            "kernel": self.kernel,
            "diggle": self.diggle,
            "density_columns": dict(self.density_columns),
        }


@dataclass
class GridCache:
    """
    Caller-owned store for the last grid density result.

    Only the bandwidth is carried into the next call; the table and
    metadata are replaced every time densities are recomputed.
    """

    grid_density: pd.DataFrame | None = None
    grid_info: GridMetadata | None = None

    @property
    def bandwidth(self) -> float | None:
        if self.grid_info is None:
            return None
        return self.grid_info.bandwidth

    @property
    def is_empty(self) -> bool:
        return self.grid_density is None and self.grid_info is None

    def reset(self) -> None:
        """Drop the stored table and metadata, and with them the bandwidth."""
        self.grid_density = None
        self.grid_info = None


class SpatiogridError(Exception):
    """Base exception for spatiogrid errors."""

    pass


class ConsistencyError(SpatiogridError):
    """Raised when data consistency checks fail."""

    pass


class ValidationError(SpatiogridError):
    """Raised when data validation fails."""

    pass


class InvalidRegionGeometry(ValidationError):
    """Raised when a region is not a valid polygonal area."""

    def __init__(self, name: str, geom_type: str, reason: str):
        self.name = name
        self.geom_type = geom_type
        self.reason = reason
        super().__init__(f"Region '{name}' ({geom_type}) is not a valid polygonal area: {reason}")


class MissingNaLabel(ValidationError):
    """Raised when cells fall outside every region but no fallback label is set."""

    def __init__(self, n_unassigned: int):
        self.n_unassigned = n_unassigned
        super().__init__(
            f"{n_unassigned} cells are not in any of the regions; "
            "specify `na_level` as the label for these cells"
        )


class UnknownColumn(ValidationError):
    """Raised when a required column is missing."""

    def __init__(self, column: str, table_name: str):
        self.column = column
        self.table_name = table_name
        super().__init__(f"Column '{column}' not found in {table_name}")


class UnknownCellType(ValidationError):
    """Raised when requested cell types are absent from the identifier column."""

    def __init__(self, values: list, column: str):
        self.values = list(values)
        self.column = column
        joined = ", ".join(str(v) for v in self.values)
        super().__init__(f"{joined} not found in '{column}'")


class NonNumericLevelOrdering(ValidationError):
    """Raised when region labels cannot be ordered numerically."""

    def __init__(self, labels: list):
        self.labels = list(labels)
        super().__init__(
            f"Cannot order levels numerically, non-numeric labels: {self.labels}. "
            "Pass `levels` explicitly or choose another `level_order`"
        )


class ColumnNamingCollision(ValidationError):
    """Raised when distinct cell type labels map to the same output column."""

    def __init__(self, column: str, labels: list):
        self.column = column
        self.labels = list(labels)
        super().__init__(f"Cell types {self.labels} all map to output column '{column}'")
