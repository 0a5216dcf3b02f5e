"""
core.py - Main CellTable class for spatially-resolved single-cell data

The CellTable class holds cell centroids and cell annotations aligned to
one master cell index, plus the grid density state produced by
spatiogrid.spatial.density.
"""
from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import geopandas as gpd
from typing import Dict, List, Optional, Union
import logging
import pandas as pd
import numpy as np

from .config import SpatiogridConfig, SpatialData, GridCache, ConsistencyError, UnknownColumn

logger = logging.getLogger(__name__)


class CellTable:
    """
    Cell-level spatial data structure.

    Core Principles:
    - Master Index: Cell IDs stored once as primary index
    - Automatic Consistency: Metadata and coordinates aligned to master index
    - Fast Operations: Integer-based indexing internally
    - Immutable Geometry: Analysis functions annotate, never move cells

    Attributes
    ----------
    _cell_index : pd.Index
        Master cell index (single source of truth)
    _cell_meta : pd.DataFrame
        Cell metadata (aligned to _cell_index), also the annotation area
        where region labels are written
    _spatial : SpatialData
        Cell centroid coordinates
    _grid_cache : GridCache
        Last grid density table, grid metadata and bandwidth
    """

    def __init__(self,
                 cell_ids: Union[List[str], pd.Index],
                 cell_metadata: Optional[pd.DataFrame] = None,
                 spatial_coords: Optional[Union[Dict, SpatialData, pd.DataFrame, np.ndarray]] = None,
                 config: Optional[SpatiogridConfig] = None):
        """
        Initialize CellTable object.

        Parameters
        ----------
        cell_ids : list or Index
            Cell identifiers
        cell_metadata : DataFrame, optional
            Cell annotations. Will be aligned to cell_ids.
        spatial_coords : dict, SpatialData, DataFrame or ndarray, optional
            Cell centroids. Can be:
            - Dict with keys: x, y
            - SpatialData object
            - DataFrame with the configured coordinate columns
            - Array of shape (n_cells, 2)
        config : SpatiogridConfig, optional
            Configuration object
        """
        self.config = config or SpatiogridConfig()

        # Master index
        self._cell_index = pd.Index(cell_ids, name=self.config.cell_id_col).astype(str)
        self._n_cells = len(self._cell_index)

        if self._n_cells == 0:
            raise ValueError("CellTable needs at least one cell")
        if not self._cell_index.is_unique:
            raise ValueError("Cell IDs must be unique")

        self._cell_meta = self._prepare_cell_metadata(cell_metadata)
        self._spatial = self._prepare_spatial_coords(spatial_coords)
        self._cell_id_to_idx = {cid: idx for idx, cid in enumerate(self._cell_index)}
        self._grid_cache = GridCache()

        self.validate_consistency(raise_error=True)
        logger.debug("CellTable created: %d cells, %d metadata columns",
                     self._n_cells, len(self._cell_meta.columns))

    # ========== Data Preparation Methods ==========

    def _prepare_cell_metadata(self, cell_metadata: Optional[pd.DataFrame]) -> pd.DataFrame:
        """Prepare and align cell metadata to master index."""
        if cell_metadata is None:
            return pd.DataFrame(index=self._cell_index)

        cell_id_col = self.config.cell_id_col

        # Set cell ID as index if it's a column
        if cell_id_col in cell_metadata.columns:
            cell_metadata = cell_metadata.set_index(cell_id_col)

        cell_metadata = cell_metadata.copy()
        cell_metadata.index = cell_metadata.index.astype(str)

        # Reindex to master (handles missing and extra cells)
        aligned = cell_metadata.reindex(self._cell_index)

        n_matched = int(self._cell_index.isin(cell_metadata.index).sum())
        n_missing = self._n_cells - n_matched
        n_extra = len(cell_metadata) - n_matched

        if n_missing > 0:
            logger.warning("%d cells missing metadata (filled with NaN)", n_missing)
        if n_extra > 0:
            logger.warning("%d metadata rows not in cell index (dropped)", n_extra)

        return aligned

    def _prepare_spatial_coords(
            self,
            spatial_coords: Optional[Union[Dict, SpatialData, pd.DataFrame, np.ndarray]]) -> SpatialData:
        """Prepare centroid coordinates aligned to master index."""

        # Case 1: None provided, look in the metadata
        if spatial_coords is None:
            x_col, y_col = self.config.get_coordinate_columns()
            if x_col in self._cell_meta.columns and y_col in self._cell_meta.columns:
                return SpatialData.from_dataframe(self._cell_meta, self.config)
            return SpatialData(x=np.full(self._n_cells, np.nan), y=np.full(self._n_cells, np.nan))

        # Case 2: Already SpatialData
        if isinstance(spatial_coords, SpatialData):
            if len(spatial_coords) != self._n_cells:
                raise ValueError(
                    f"SpatialData length ({len(spatial_coords)}) != n_cells ({self._n_cells})"
                )
            return spatial_coords

        # Case 3: DataFrame
        if isinstance(spatial_coords, pd.DataFrame):
            if spatial_coords.index.name == self.config.cell_id_col:
                spatial_coords = spatial_coords.copy()
                spatial_coords.index = spatial_coords.index.astype(str)
                spatial_coords = spatial_coords.reindex(self._cell_index)
            elif len(spatial_coords) != self._n_cells:
                raise ValueError(
                    f"Coordinate table length ({len(spatial_coords)}) != n_cells ({self._n_cells})"
                )
            return SpatialData.from_dataframe(spatial_coords, self.config)

        # Case 4: Dictionary
        if isinstance(spatial_coords, dict):
            missing = [k for k in ('x', 'y') if k not in spatial_coords]
            if missing:
                raise ValueError(f"Missing spatial keys: {missing}")

            for key in ('x', 'y'):
                if len(spatial_coords[key]) != self._n_cells:
                    raise ValueError(
                        f"Coordinate '{key}' length ({len(spatial_coords[key])}) != n_cells ({self._n_cells})"
                    )
            return SpatialData(x=np.asarray(spatial_coords['x']), y=np.asarray(spatial_coords['y']))

        # Case 5: (n_cells, 2) array
        if isinstance(spatial_coords, np.ndarray):
            if spatial_coords.ndim != 2 or spatial_coords.shape != (self._n_cells, 2):
                raise ValueError(
                    f"Coordinate array shape {spatial_coords.shape} != ({self._n_cells}, 2)"
                )
            return SpatialData(x=spatial_coords[:, 0], y=spatial_coords[:, 1])

        raise TypeError(f"Unsupported spatial_coords type: {type(spatial_coords)}")

    # ========== Consistency Validation ==========

    def validate_consistency(self, raise_error: bool = False) -> Dict[str, bool]:
        """
        Validate all components are consistent.

        Parameters
        ----------
        raise_error : bool
            If True, raise error on inconsistency

        Returns
        -------
        dict
            Status of each component
        """
        status = {}
        issues = []

        status['cell_metadata'] = len(self._cell_meta) == self._n_cells
        if not status['cell_metadata']:
            issues.append(f"Cell metadata has {len(self._cell_meta)} rows, expected {self._n_cells}")

        status['spatial'] = len(self._spatial) == self._n_cells
        if not status['spatial']:
            issues.append(f"Spatial coords have {len(self._spatial)} cells, expected {self._n_cells}")

        status['overall'] = all(status.values())

        if issues and raise_error:
            raise ConsistencyError("\n".join(issues))

        return status

    # ========== Properties ==========

    @property
    def cell_index(self) -> pd.Index:
        """Get master cell index."""
        return self._cell_index

    @property
    def n_cells(self) -> int:
        """Get number of cells."""
        return self._n_cells

    @property
    def cell_meta(self) -> pd.DataFrame:
        """Get cell metadata (aligned to master index)."""
        return self._cell_meta

    @property
    def spatial(self) -> SpatialData:
        """Get centroid coordinates."""
        return self._spatial

    @property
    def grid_cache(self) -> GridCache:
        """Get the grid density state of the last grid_density() call."""
        return self._grid_cache

    @property
    def grid_density(self) -> Optional[pd.DataFrame]:
        """Get the last grid density table, if any."""
        return self._grid_cache.grid_density

    @property
    def grid_info(self):
        """Get the last grid metadata, if any."""
        return self._grid_cache.grid_info

    # ========== Index Helpers ==========

    def _get_cell_indices(self, cell_ids: Union[List[str], np.ndarray, pd.Index]) -> np.ndarray:
        """
        Convert cell IDs to integer indices.

        Parameters
        ----------
        cell_ids : list, array, or Index
            Cell identifiers

        Returns
        -------
        np.ndarray
            Integer indices (positions in master index)
        """
        cell_ids = pd.Index(cell_ids).astype(str)

        indices = [self._cell_id_to_idx[cid] for cid in cell_ids
                   if cid in self._cell_id_to_idx]

        if len(indices) != len(cell_ids):
            n_missing = len(cell_ids) - len(indices)
            logger.warning("%d cell IDs not found", n_missing)

        return np.array(indices, dtype=np.int64)

    def get_column(self, column: str) -> pd.Series:
        """
        Get a cell metadata column, raising UnknownColumn if absent.

        Parameters
        ----------
        column : str
            Column in cell_meta

        Returns
        -------
        pd.Series
        """
        if column not in self._cell_meta.columns:
            raise UnknownColumn(column, "cell_meta")
        return self._cell_meta[column]

    # ========== Subsetting Methods ==========

    def subset_by_cells(self,
                        cell_ids: Union[List[str], np.ndarray, pd.Index],
                        copy: bool = True) -> 'CellTable':
        """
        Create new CellTable with subset of cells.

        Metadata and coordinates are subsetted together. The grid cache is
        not carried over: densities of the parent do not describe the subset.

        Parameters
        ----------
        cell_ids : list, array, or Index
            Cell IDs to keep
        copy : bool
            If True, create deep copy of metadata

        Returns
        -------
        CellTable
            New object with subset of cells
        """
        indices = self._get_cell_indices(cell_ids)

        if len(indices) == 0:
            raise ValueError("No valid cell IDs found")

        subset_meta = self._cell_meta.iloc[indices]
        if copy:
            subset_meta = subset_meta.copy()

        return CellTable(
            cell_ids=self._cell_index[indices],
            cell_metadata=subset_meta,
            spatial_coords=self._spatial.subset(indices),
            config=self.config
        )

    # ========== Access Methods ==========

    def get_spatial_coords(self,
                           cell_ids: Optional[Union[List[str], str]] = None,
                           as_dataframe: bool = False) -> Union[np.ndarray, pd.DataFrame]:
        """
        Get centroid coordinates for cells.

        Parameters
        ----------
        cell_ids : list or str, optional
            Cell ID(s). If None, all cells.
        as_dataframe : bool
            If True, return as DataFrame

        Returns
        -------
        np.ndarray or pd.DataFrame
            Spatial coordinates (N × 2)
        """
        if isinstance(cell_ids, str):
            cell_ids = [cell_ids]

        if cell_ids is not None:
            indices = self._get_cell_indices(cell_ids)
        else:
            indices = np.arange(self._n_cells)

        coords = self._spatial.subset(indices).as_array()

        if as_dataframe:
            x_col, y_col = self.config.get_coordinate_columns()
            return pd.DataFrame(
                coords,
                index=self._cell_index[indices],
                columns=[x_col, y_col]
            )

        return coords

    def to_geopandas(self, include_metadata: bool = False) -> 'gpd.GeoDataFrame':
        """
        Convert cell centroids to a point GeoDataFrame.

        Rows are in master index order and indexed by integer position, so
        spatial join results map straight back to cells.

        Parameters
        ----------
        include_metadata : bool
            Whether to include cell metadata columns

        Returns
        -------
        gpd.GeoDataFrame
            One Point geometry per cell

        Examples
        --------
        >>> gdf = ct.to_geopandas(include_metadata=True)
        >>> gdf.plot(column='cell_type')
        """
        import geopandas as gpd

        gdf = gpd.GeoDataFrame(
            {self.config.cell_id_col: self._cell_index.values},
            geometry=gpd.points_from_xy(self._spatial.x, self._spatial.y),
            crs=None
        )

        if include_metadata:
            for col in self._cell_meta.columns:
                if col not in gdf.columns:
                    gdf[col] = self._cell_meta[col].values

        return gdf

    # ========== Summary ==========

    def summary(self) -> Dict[str, object]:
        """
        Get summary of the object.

        Returns
        -------
        dict
            Cell count, metadata columns, coordinate extent and grid state
        """
        coords = self.get_spatial_coords()
        finite = np.isfinite(coords).all(axis=1)

        summary = {
            'n_cells': self._n_cells,
            'metadata_columns': list(self._cell_meta.columns),
            'n_cells_with_coords': int(finite.sum()),
            'has_grid_density': self._grid_cache.grid_density is not None,
            'bandwidth': self._grid_cache.bandwidth,
        }
        if finite.any():
            summary['xlim'] = (float(coords[finite, 0].min()), float(coords[finite, 0].max()))
            summary['ylim'] = (float(coords[finite, 1].min()), float(coords[finite, 1].max()))

        return summary

    def __repr__(self) -> str:
        return (f"CellTable(n_cells={self._n_cells}, "
                f"meta_columns={len(self._cell_meta.columns)}, "
                f"grid_density={'yes' if self._grid_cache.grid_density is not None else 'no'})")

    # ========== Constructors ==========

    @staticmethod
    def from_dataframe(df: pd.DataFrame,
                       config: Optional[SpatiogridConfig] = None) -> 'CellTable':
        """
        Create a CellTable from one table of cells.

        The table must hold the configured coordinate columns. The cell ID
        column is used when present, otherwise the DataFrame index.

        Parameters
        ----------
        df : pd.DataFrame
            One row per cell
        config : SpatiogridConfig, optional
            Column names

        Returns
        -------
        CellTable

        Examples
        --------
        >>> df = pd.read_csv('cells.csv')
        >>> ct = CellTable.from_dataframe(df)
        """
        config = config or SpatiogridConfig()
        cell_id_col = config.cell_id_col

        if cell_id_col in df.columns:
            df = df.set_index(cell_id_col)

        spatial = SpatialData.from_dataframe(df, config)
        x_col, y_col = config.get_coordinate_columns()
        meta = df.drop(columns=[x_col, y_col])

        return CellTable(
            cell_ids=df.index,
            cell_metadata=meta,
            spatial_coords=spatial,
            config=config
        )
