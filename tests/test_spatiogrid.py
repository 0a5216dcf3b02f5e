"""
test_spatiogrid.py - Test suite for the CellTable container and region classification

How to run:
    pytest tests/ -v                          # run all tests
    pytest tests/ -v -k "Region"              # only the region tests
    pytest tests/test_spatiogrid.py::TestCellTableCreation -v

Reading test results:
    PASSED  → your code works as expected
    FAILED  → something is broken (look at the AssertionError message)
    ERROR   → test itself crashed before even reaching the assert
"""

import numpy as np
import pandas as pd
import pytest
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box

from spatiogrid.data.config import (
    InvalidRegionGeometry,
    MissingNaLabel,
    NonNumericLevelOrdering,
    UnknownColumn,
    ValidationError,
)

# ===========================================================================
# SECTION 1: CellTable Creation
#
# Goal: Verify that the CellTable container initializes correctly.
#
# We check:
#   (a) basic counts   : n_cells, index content
#   (b) coordinates    : every accepted input form
#   (c) metadata       : alignment to the master index
#   (d) invalid input  : duplicates, empty tables, bad shapes
#
# Fixture used: ct_basic, ct_points  (from conftest.py)
# ===========================================================================


class TestCellTableCreation:
    """All tests for CellTable initialization."""

    # -----------------------------------------------------------------------
    # (a) Basic counts
    # -----------------------------------------------------------------------

    def test_n_cells(self, ct_basic):
        """ct.n_cells should equal the number of cells we passed in."""
        assert ct_basic.n_cells == 100

    def test_cell_index_values(self, ct_basic):
        """The master index keeps the IDs in the order given."""
        assert ct_basic.cell_index.tolist() == [f"cell_{i}" for i in range(100)]

    def test_grid_cache_starts_empty(self, ct_basic):
        """Nothing has been computed yet, so there is no table, metadata or bandwidth."""
        assert ct_basic.grid_cache.is_empty
        assert ct_basic.grid_density is None
        assert ct_basic.grid_info is None
        assert ct_basic.grid_cache.bandwidth is None

    # -----------------------------------------------------------------------
    # (b) Coordinates
    # -----------------------------------------------------------------------

    def test_coords_from_array(self, ct_points):
        """An (n, 2) array is split into x and y."""
        coords = ct_points.get_spatial_coords()
        assert coords.shape == (6, 2)
        assert coords[2].tolist() == [5.0, 5.0]

    def test_coords_from_metadata_columns(self):
        """
        Without spatial_coords, the configured centroid columns of the
        metadata are used.
        """
        from spatiogrid.data.core import CellTable

        meta = pd.DataFrame(
            {"x_centroid": [0.0, 1.0], "y_centroid": [2.0, 3.0]},
            index=["c1", "c2"],
        )
        ct = CellTable(cell_ids=["c1", "c2"], cell_metadata=meta)
        assert ct.spatial.x.tolist() == [0.0, 1.0]
        assert ct.spatial.y.tolist() == [2.0, 3.0]

    def test_coords_missing_become_nan(self):
        """No coordinate source at all → NaN coordinates, flagged by validation."""
        from spatiogrid.data.core import CellTable
        from spatiogrid.spatial.shared import validate_spatial_data

        ct = CellTable(cell_ids=["c1", "c2"])
        assert np.isnan(ct.get_spatial_coords()).all()
        assert validate_spatial_data(ct)['overall'] is False

    def test_get_spatial_coords_as_dataframe(self, ct_points):
        """as_dataframe=True gives named columns indexed by cell ID."""
        df = ct_points.get_spatial_coords(["cell_3"], as_dataframe=True)
        assert list(df.columns) == ["x_centroid", "y_centroid"]
        assert df.loc["cell_3", "x_centroid"] == 7.0

    def test_get_spatial_coords_subset_order(self, ct_points):
        """Requested IDs come back in the requested order as an (n, 2) array."""
        coords = ct_points.get_spatial_coords(["cell_4", "cell_0"])
        assert coords.shape == (2, 2)
        assert coords.tolist() == [[9.0, 9.0], [1.0, 1.0]]

    def test_spatial_data_as_array(self):
        from spatiogrid.data.config import SpatialData

        arr = SpatialData(x=[1, 2], y=[3, 4]).as_array()
        assert arr.dtype == np.float64
        assert arr.tolist() == [[1.0, 3.0], [2.0, 4.0]]


    def test_from_dataframe(self):
        """CellTable.from_dataframe uses the 'cell' column as the index."""
        from spatiogrid.data.core import CellTable

        df = pd.DataFrame({
            "cell": ["a", "b", "c"],
            "x_centroid": [0.0, 1.0, 2.0],
            "y_centroid": [0.0, 1.0, 4.0],
            "cell_type": ["T", "B", "T"],
        })
        ct = CellTable.from_dataframe(df)

        assert ct.cell_index.tolist() == ["a", "b", "c"]
        assert ct.cell_meta.columns.tolist() == ["cell_type"]
        assert ct.spatial.y.tolist() == [0.0, 1.0, 4.0]

    # -----------------------------------------------------------------------
    # (c) Metadata alignment
    # -----------------------------------------------------------------------

    def test_metadata_reordered_to_master_index(self):
        """Metadata given in another order is realigned by cell ID."""
        from spatiogrid.data.core import CellTable

        meta = pd.DataFrame({"cell_type": ["B", "A"]}, index=["c2", "c1"])
        ct = CellTable(cell_ids=["c1", "c2"], cell_metadata=meta,
                       spatial_coords={"x": [0, 1], "y": [0, 1]})
        assert ct.cell_meta["cell_type"].tolist() == ["A", "B"]

    def test_metadata_missing_rows_filled_with_nan(self):
        """Cells without metadata rows get NaN."""
        from spatiogrid.data.core import CellTable

        meta = pd.DataFrame({"cell_type": ["A"]}, index=["c1"])
        ct = CellTable(cell_ids=["c1", "c2"], cell_metadata=meta,
                       spatial_coords={"x": [0, 1], "y": [0, 1]})
        assert len(ct.cell_meta) == 2
        assert pd.isna(ct.cell_meta.loc["c2", "cell_type"])

    # -----------------------------------------------------------------------
    # (d) Invalid input
    # -----------------------------------------------------------------------

    def test_duplicate_ids_raise(self):
        """Cell IDs are the identity of a cell and must be unique."""
        from spatiogrid.data.core import CellTable

        with pytest.raises(ValueError, match="unique"):
            CellTable(cell_ids=["c1", "c1"], spatial_coords={"x": [0, 1], "y": [0, 1]})

    def test_empty_raises(self):
        """A CellTable needs at least one cell."""
        from spatiogrid.data.core import CellTable

        with pytest.raises(ValueError):
            CellTable(cell_ids=[])

    def test_wrong_array_shape_raises(self):
        """Coordinate arrays must be (n_cells, 2)."""
        from spatiogrid.data.core import CellTable

        with pytest.raises(ValueError):
            CellTable(cell_ids=["c1", "c2"], spatial_coords=np.zeros((3, 2)))

    def test_missing_dict_key_raises(self):
        """Coordinate dicts need both 'x' and 'y'."""
        from spatiogrid.data.core import CellTable

        with pytest.raises(ValueError, match="Missing"):
            CellTable(cell_ids=["c1"], spatial_coords={"x": [0.0]})


# ===========================================================================
# SECTION 2: CellTable Operations
#
# We check:
#   (a) columns      : get_column and UnknownColumn
#   (b) subsetting   : metadata and coordinates stay aligned
#   (c) conversion   : to_geopandas, summary
# ===========================================================================


class TestCellTableOperations:
    """Access, subsetting and conversion."""

    # -----------------------------------------------------------------------
    # (a) Columns
    # -----------------------------------------------------------------------

    def test_get_column(self, ct_basic):
        """get_column returns the metadata Series."""
        col = ct_basic.get_column("cell_type")
        assert len(col) == 100
        assert set(col.unique()) == {"TypeA", "TypeB"}

    def test_get_column_unknown(self, ct_basic):
        """A missing column raises UnknownColumn naming the column."""
        with pytest.raises(UnknownColumn, match="not_there") as err:
            ct_basic.get_column("not_there")
        assert err.value.column == "not_there"

    # -----------------------------------------------------------------------
    # (b) Subsetting
    # -----------------------------------------------------------------------

    def test_subset_keeps_alignment(self, ct_points):
        """Coordinates and metadata of the kept cells travel together."""
        sub = ct_points.subset_by_cells(["cell_4", "cell_0"])

        assert sub.n_cells == 2
        assert sub.cell_index.tolist() == ["cell_4", "cell_0"]
        assert sub.get_spatial_coords().tolist() == [[9.0, 9.0], [1.0, 1.0]]
        assert sub.cell_meta["cell_type"].tolist() == ["B", "A"]

    def test_subset_has_fresh_grid_cache(self, ct_basic):
        """Densities of the parent do not describe the subset."""
        from spatiogrid.spatial.density import grid_density

        grid_density(ct_basic, bandwidth=1.0, ngrid_x=10)
        sub = ct_basic.subset_by_cells(ct_basic.cell_index[:50])

        assert ct_basic.grid_cache.bandwidth == 1.0
        assert sub.grid_cache.is_empty

    def test_subset_unknown_ids(self, ct_points):
        """Subsetting to nothing is an error."""
        with pytest.raises(ValueError):
            ct_points.subset_by_cells(["nope"])

    # -----------------------------------------------------------------------
    # (c) Conversion
    # -----------------------------------------------------------------------

    def test_to_geopandas(self, ct_points):
        """One point per cell, positional index, optional metadata."""
        gdf = ct_points.to_geopandas(include_metadata=True)

        assert len(gdf) == 6
        assert isinstance(gdf.index, pd.RangeIndex)
        assert gdf.geometry.iloc[3].equals(Point(7, 2))
        assert gdf["cell_type"].tolist() == ["A", "A", "B", "B", "B", "A"]

    def test_summary(self, ct_points):
        """summary() reports counts, extent and grid state."""
        s = ct_points.summary()
        assert s['n_cells'] == 6
        assert s['xlim'] == (1.0, 20.0)
        assert s['has_grid_density'] is False
        assert s['bandwidth'] is None

    def test_repr(self, ct_points):
        assert repr(ct_points).startswith("CellTable(n_cells=6")


# ===========================================================================
# SECTION 3: Shared Utilities
#
# We check:
#   (a) clean_name    : column-safe names from cell type labels
#   (b) extent        : bounding box of all cells
# ===========================================================================


class TestSharedUtilities:
    """Helpers used by both the region and density tools."""

    # -----------------------------------------------------------------------
    # (a) clean_name
    # -----------------------------------------------------------------------

    @pytest.mark.parametrize("label, expected", [
        ("TypeA", "type_a"),
        ("T cell", "t_cell"),
        ("T-cell", "t_cell"),
        ("CD4+ T cells", "cd4_t_cells"),
        ("  Tumor  ", "tumor"),
        ("3 prime", "x3_prime"),
        ("%mito", "percent_mito"),
        ("", "x"),
        (5, "x5"),
    ])
    def test_clean_name(self, label, expected):
        from spatiogrid.spatial.shared import clean_name
        assert clean_name(label) == expected

    def test_clean_names_keeps_duplicates(self):
        """clean_names is a plain map; collisions are detected by the caller."""
        from spatiogrid.spatial.shared import clean_names
        assert clean_names(["T cell", "T-cell"]) == ["t_cell", "t_cell"]

    # -----------------------------------------------------------------------
    # (b) Extent
    # -----------------------------------------------------------------------

    def test_calculate_spatial_extent(self, ct_points):
        from spatiogrid.spatial.shared import calculate_spatial_extent

        extent = calculate_spatial_extent(ct_points)
        assert extent['xmin'] == 1.0
        assert extent['xmax'] == 20.0
        assert extent['width'] == 19.0
        assert extent['area'] == 19.0 * 19.0

    def test_safe_divide(self):
        from spatiogrid.spatial.shared import safe_divide

        out = safe_divide(np.array([1.0, 2.0]), np.array([2.0, 0.0]), fill_value=-1.0)
        assert out.tolist() == [0.5, -1.0]


# ===========================================================================
# SECTION 4: Region Classification
#
# Goal: every cell gets exactly one label from a collection of polygons.
#
# We check:
#   (a) assignment     : inside / outside / boundary / holes
#   (b) overlap        : the later region wins
#   (c) levels         : na_level first, numeric / lexicographic / custom
#   (d) region input   : mapping, list, single geometry, GeoSeries
#   (e) errors         : invalid geometry, missing na_level, bad levels
#   (f) end-to-end     : 100 random cells in two halves
#
# Fixture used: ct_points, ct_basic, halves  (from conftest.py)
# ===========================================================================


class TestRegionAssignment:
    """cells_in_region: who is inside what."""

    # -----------------------------------------------------------------------
    # (a) Assignment
    # -----------------------------------------------------------------------

    def test_inside_and_outside(self, ct_points, halves):
        """
        Cells in exactly one region get that region's name, cells in none
        get na_level ("0").
        """
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", level_order="lexicographic")
        labels = ct_points.cell_meta["side"].astype(str).tolist()

        assert labels[0] == "left"
        assert labels[1] == "left"
        assert labels[3] == "right"
        assert labels[4] == "right"
        assert labels[5] == "0"

    def test_boundary_counts_as_inside(self, ct_points):
        """A cell exactly on a region edge belongs to that region."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, {"1": box(0, 0, 5, 10)}, name_to="roi")
        assert ct_points.cell_meta.loc["cell_2", "roi"] == "1"

    def test_hole_is_outside(self, ct_points):
        """Cells inside a polygon hole are not in the polygon."""
        from spatiogrid.spatial.region import cells_in_region

        shell = [(0, 0), (10, 0), (10, 10), (0, 10)]
        hole = [(3, 3), (6, 3), (6, 6), (3, 6)]
        cells_in_region(ct_points, {"1": Polygon(shell, [hole])}, name_to="roi")

        roi = ct_points.cell_meta["roi"]
        assert roi["cell_2"] == "0"  # (5, 5) sits in the hole
        assert roi["cell_1"] == "1"
        assert roi["cell_3"] == "1"

    def test_multipolygon(self, ct_points):
        """A MultiPolygon region claims cells in any of its parts."""
        from spatiogrid.spatial.region import cells_in_region

        corners = MultiPolygon([box(0, 0, 2, 2), box(8, 8, 10, 10)])
        cells_in_region(ct_points, {"1": corners}, name_to="roi")

        roi = ct_points.cell_meta["roi"].astype(str).tolist()
        assert roi == ["1", "0", "0", "0", "1", "0"]

    def test_output_is_categorical(self, ct_points, halves):
        """The column is a pandas Categorical with na_level as first category."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", level_order="lexicographic")
        col = ct_points.cell_meta["side"]

        assert isinstance(col.dtype, pd.CategoricalDtype)
        assert col.cat.categories.tolist() == ["0", "left", "right"]

    def test_returns_same_object(self, ct_points, halves):
        from spatiogrid.spatial.region import cells_in_region

        out = cells_in_region(ct_points, halves, name_to="side", level_order="lexicographic")
        assert out is ct_points

    def test_overwrites_existing_column(self, ct_points, halves):
        """A second call replaces the column instead of merging into it."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", level_order="lexicographic")
        cells_in_region(ct_points, {"7": box(0, 0, 100, 100)}, name_to="side")

        col = ct_points.cell_meta["side"]
        assert (col == "7").all()
        assert col.cat.categories.tolist() == ["0", "7"]

    def test_custom_na_level(self, ct_points, halves):
        """na_level can be any string and is always the first category."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", na_level="none",
                        level_order="lexicographic")
        col = ct_points.cell_meta["side"]

        assert col["cell_5"] == "none"
        assert col.cat.categories[0] == "none"

    # -----------------------------------------------------------------------
    # (b) Overlap
    # -----------------------------------------------------------------------

    def test_later_region_wins(self, ct_points):
        """For overlapping regions [A, B], a cell inside both ends up in B."""
        from spatiogrid.spatial.region import cells_in_region

        regions = {"A": box(0, 0, 6, 10), "B": box(4, 0, 10, 10)}
        cells_in_region(ct_points, regions, name_to="roi", level_order="input")

        roi = ct_points.cell_meta["roi"]
        assert roi["cell_1"] == "B"  # (4, 8) is in both
        assert roi["cell_2"] == "B"  # (5, 5) is in both
        assert roi["cell_0"] == "A"  # (1, 1) is only in A

    def test_order_decides_overlap(self, ct_points):
        """Reversing the input order flips the winner."""
        from spatiogrid.spatial.region import cells_in_region

        regions = {"B": box(4, 0, 10, 10), "A": box(0, 0, 6, 10)}
        cells_in_region(ct_points, regions, name_to="roi", level_order="input")

        assert ct_points.cell_meta.loc["cell_2", "roi"] == "A"

    def test_shared_edge_goes_to_later_region(self, ct_points, halves):
        """(5, 5) touches both halves; 'right' comes second."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", level_order="lexicographic")
        assert ct_points.cell_meta.loc["cell_2", "side"] == "right"


class TestRegionLevels:
    """Level ordering of the region categorical."""

    # -----------------------------------------------------------------------
    # (c) Levels
    # -----------------------------------------------------------------------

    def test_numeric_not_lexicographic(self, ct_points):
        """
        Regions named "10", "2", "0" with na_level "0": the levels are
        ["0", "2", "10"]. Lexicographic order would put "10" before "2".
        """
        from spatiogrid.spatial.region import cells_in_region

        regions = {
            "10": box(0, 0, 2, 10),   # cell_0
            "2": box(3, 0, 6, 10),    # cell_1, cell_2
            "0": box(6, 0, 10, 10),   # cell_3, cell_4
        }
        cells_in_region(ct_points, regions, name_to="roi")

        col = ct_points.cell_meta["roi"]
        assert col.cat.categories.tolist() == ["0", "2", "10"]
        assert col.astype(str).tolist() == ["10", "2", "2", "0", "0", "0"]

    def test_levels_only_realised_labels(self, ct_points):
        """A region that claims no cell does not become a level."""
        from spatiogrid.spatial.region import cells_in_region

        regions = {"1": box(0, 0, 2, 2), "2": box(50, 50, 60, 60)}
        cells_in_region(ct_points, regions, name_to="roi")

        assert ct_points.cell_meta["roi"].cat.categories.tolist() == ["0", "1"]

    def test_non_numeric_names_raise(self, ct_points, halves):
        """The default numeric ordering refuses names that are not numbers."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.raises(NonNumericLevelOrdering) as err:
            cells_in_region(ct_points, halves, name_to="side")

        assert set(err.value.labels) == {"left", "right"}
        assert "side" not in ct_points.cell_meta.columns

    def test_explicit_levels(self, ct_points, halves):
        """Explicit levels are used as given."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, halves, name_to="side", levels=["0", "right", "left"])
        assert ct_points.cell_meta["side"].cat.categories.tolist() == ["0", "right", "left"]

    def test_explicit_levels_must_cover_labels(self, ct_points, halves):
        """Leaving out a realised label is an error, not a silent NaN."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.raises(ValidationError, match="right"):
            cells_in_region(ct_points, halves, name_to="side", levels=["0", "left"])

    def test_callable_level_order(self, ct_points):
        """A callable is used as the sort key for non-sentinel levels."""
        from spatiogrid.spatial.region import cells_in_region

        regions = {"1": box(0, 0, 2, 2), "2": box(6, 0, 10, 10)}
        cells_in_region(ct_points, regions, name_to="roi", level_order=lambda s: -int(s))

        assert ct_points.cell_meta["roi"].cat.categories.tolist() == ["0", "2", "1"]

    @pytest.mark.parametrize("order, expected", [
        ("numeric", ["0", "2", "10"]),
        ("lexicographic", ["0", "10", "2"]),
    ])
    def test_order_levels(self, order, expected):
        from spatiogrid.spatial.region import order_levels

        assert order_levels(["10", "0", "2", "2"], "0", order) == expected

    def test_order_levels_input(self):
        from spatiogrid.spatial.region import order_levels

        levels = order_levels(["b", "a"], "0", "input", region_names=["c", "a", "b"])
        assert levels == ["0", "a", "b"]

    def test_order_levels_without_sentinel(self):
        from spatiogrid.spatial.region import order_levels

        assert order_levels(["3", "1"], None) == ["1", "3"]

    def test_unknown_level_order(self):
        from spatiogrid.spatial.region import order_levels

        with pytest.raises(ValueError):
            order_levels(["1"], "0", "alphabetical")


class TestRegionInput:
    """Accepted region collections and their names."""

    # -----------------------------------------------------------------------
    # (d) Region input forms
    # -----------------------------------------------------------------------

    def test_unnamed_list_warns_and_uses_positions(self, ct_points):
        """An unnamed list is labelled "1", "2", ... with a warning."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.warns(UserWarning, match="unnamed"):
            cells_in_region(ct_points, [box(0, 0, 2, 2), box(8, 8, 10, 10)], name_to="roi")

        roi = ct_points.cell_meta["roi"].astype(str).tolist()
        assert roi == ["1", "0", "0", "0", "2", "0"]

    def test_unnamed_warning_points_at_caller(self, ct_points):
        """The unnamed-region warning is attributed to the calling code."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.warns(UserWarning, match="unnamed") as record:
            cells_in_region(ct_points, [box(0, 0, 2, 2)], name_to="roi")

        unnamed = [w for w in record if "unnamed" in str(w.message)]
        assert unnamed[0].filename == __file__


    def test_single_polygon(self, ct_points):
        """A single geometry is a one-region collection named "1"."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.warns(UserWarning):
            cells_in_region(ct_points, box(0, 0, 2, 2), name_to="roi")

        assert ct_points.cell_meta.loc["cell_0", "roi"] == "1"

    def test_geoseries_with_names(self, ct_points):
        """A GeoSeries with a labelled index is named by that index."""
        import geopandas as gpd
        from spatiogrid.spatial.region import normalize_regions

        gs = gpd.GeoSeries([box(0, 0, 1, 1), box(2, 2, 3, 3)], index=["7", "9"])
        regions, named = normalize_regions(gs)

        assert named is True
        assert list(regions) == ["7", "9"]

    def test_geodataframe_range_index_is_unnamed(self):
        import geopandas as gpd
        from spatiogrid.spatial.region import normalize_regions

        gdf = gpd.GeoDataFrame(geometry=[box(0, 0, 1, 1)])
        with pytest.warns(UserWarning):
            regions, named = normalize_regions(gdf)

        assert named is False
        assert list(regions) == ["1"]

    def test_mapping_keys_become_strings(self):
        from spatiogrid.spatial.region import normalize_regions

        regions, named = normalize_regions({1: box(0, 0, 1, 1), 2: box(1, 1, 2, 2)})
        assert list(regions) == ["1", "2"]

    def test_empty_collection_raises(self):
        from spatiogrid.spatial.region import normalize_regions

        with pytest.raises(ValidationError):
            normalize_regions({})

    def test_unsupported_type_raises(self):
        from spatiogrid.spatial.region import normalize_regions

        with pytest.raises(TypeError):
            normalize_regions("box")

    def test_assign_regions_from_array(self):
        """assign_regions also takes raw coordinates."""
        from spatiogrid.spatial.region import assign_regions

        labels = assign_regions(np.array([[0.5, 0.5], [5.0, 5.0]]), {"a": box(0, 0, 1, 1)})
        assert labels.tolist() == ["a", None]


class TestRegionErrors:
    """Failures are raised before the cell table is touched."""

    # -----------------------------------------------------------------------
    # (e) Errors
    # -----------------------------------------------------------------------

    @pytest.mark.parametrize("geom", [
        LineString([(0, 0), (5, 5)]),
        Point(1, 1),
        Polygon(),
        Polygon([(0, 0), (2, 2), (2, 0), (0, 2)]),  # self-intersecting bow-tie
        "not a geometry",
    ])
    def test_invalid_geometry(self, ct_points, geom):
        from spatiogrid.spatial.region import cells_in_region

        with pytest.raises(InvalidRegionGeometry) as err:
            cells_in_region(ct_points, {"1": box(0, 0, 1, 1), "bad": geom}, name_to="roi")

        assert err.value.name == "bad"
        assert "roi" not in ct_points.cell_meta.columns

    def test_missing_na_label(self, ct_points, halves):
        """na_level=None while cell_5 sits outside every region."""
        from spatiogrid.spatial.region import cells_in_region

        with pytest.raises(MissingNaLabel) as err:
            cells_in_region(ct_points, halves, name_to="side", na_level=None,
                            level_order="lexicographic")

        assert err.value.n_unassigned == 1
        assert "side" not in ct_points.cell_meta.columns

    def test_no_na_label_needed_when_all_assigned(self, ct_points):
        """With every cell inside, na_level=None is fine and adds no level."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_points, {"1": box(0, 0, 100, 100)}, name_to="roi", na_level=None)
        assert ct_points.cell_meta["roi"].cat.categories.tolist() == ["1"]

    def test_duplicate_levels(self, ct_points, halves):
        from spatiogrid.spatial.region import cells_in_region

        with pytest.raises(ValidationError, match="Duplicated"):
            cells_in_region(ct_points, halves, name_to="side",
                            levels=["0", "left", "right", "left"])


class TestRegionEndToEnd:
    """
    (f) 100 cells uniformly scattered in [0, 10]², two halves "left" and
    "right": every cell lands in one of them, none in "0".
    """

    def test_halves_cover_everything(self, ct_basic, halves):
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_basic, halves, name_to="side", level_order="lexicographic")
        col = ct_basic.cell_meta["side"]

        assert set(col.astype(str)) <= {"left", "right"}
        assert (col != "0").all()
        assert col.cat.categories.tolist() == ["0", "left", "right"]

    def test_halves_match_x_coordinate(self, ct_basic, halves):
        """'left' exactly when x < 5."""
        from spatiogrid.spatial.region import cells_in_region

        cells_in_region(ct_basic, halves, name_to="side", level_order="lexicographic")

        x = ct_basic.spatial.x
        expected = np.where(x < 5, "left", "right")
        assert ct_basic.cell_meta["side"].astype(str).tolist() == expected.tolist()
