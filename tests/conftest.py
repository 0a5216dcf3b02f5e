"""
conftest.py - Shared test fixtures for spatiogrid

pytest loads this file before collecting the test modules. Every fixture
defined here can be requested by name from any test:

    def test_something(ct_basic):      ← pytest builds ct_basic and passes it in
        assert ct_basic.n_cells == 100

Fixtures are rebuilt for every test, so a test that writes a region column
or fills the grid cache never leaks state into the next one.
"""

import numpy as np
import pandas as pd
import pytest
from shapely.geometry import box

from spatiogrid.data.core import CellTable

# ===========================================================================
# Constants: the size of our fake dataset
# ===========================================================================

N_CELLS = 100  # total fake cells
SIDE = 10.0  # cells are scattered in [0, SIDE] × [0, SIDE]


# ===========================================================================
# Fixture 1: 100 uniformly scattered cells with two cell types
# ===========================================================================


@pytest.fixture
def ct_basic():
    """
    100 cells uniformly scattered in a 10 × 10 square.

    Use this when a test needs:
      - centroid coordinates
      - a 'cell_type' column with two types (TypeA / TypeB)
    """

    np.random.seed(42)  # fix random seed → reproducible

    cell_ids = [f"cell_{i}" for i in range(N_CELLS)]

    cell_meta = pd.DataFrame(
        {
            "cell_type": np.random.choice(["TypeA", "TypeB"], N_CELLS),
        },
        index=cell_ids,
    )

    spatial = {
        "x": np.random.uniform(0, SIDE, N_CELLS),
        "y": np.random.uniform(0, SIDE, N_CELLS),
    }

    return CellTable(
        cell_ids=cell_ids,
        cell_metadata=cell_meta,
        spatial_coords=spatial,
    )


# ===========================================================================
# Fixture 2: a handful of cells at hand-picked positions
# ===========================================================================


@pytest.fixture
def ct_points():
    """
    Six cells at known positions, for exact region assertions.

        cell_0 (1, 1)    inside the left half
        cell_1 (4, 8)    inside the left half
        cell_2 (5, 5)    exactly on the line x = 5
        cell_3 (7, 2)    inside the right half
        cell_4 (9, 9)    inside the right half
        cell_5 (20, 20)  far outside everything
    """

    coords = np.array([
        [1.0, 1.0],
        [4.0, 8.0],
        [5.0, 5.0],
        [7.0, 2.0],
        [9.0, 9.0],
        [20.0, 20.0],
    ])
    cell_ids = [f"cell_{i}" for i in range(len(coords))]

    cell_meta = pd.DataFrame(
        {
            "cell_type": ["A", "A", "B", "B", "B", "A"],
        },
        index=cell_ids,
    )

    return CellTable(
        cell_ids=cell_ids,
        cell_metadata=cell_meta,
        spatial_coords=coords,
    )


# ===========================================================================
# Fixture 3: clustered cells (TypeA bottom-left, TypeB top-right)
# ===========================================================================


@pytest.fixture
def ct_clustered():
    """
    Two tight clusters of 40 cells each, plus 20 background cells.

    TypeA sits around (2, 2), TypeB around (8, 8), background cells are
    labelled 'Other'. Density peaks must line up with the clusters.
    """

    np.random.seed(0)

    a = np.random.normal(2.0, 0.4, (40, 2))
    b = np.random.normal(8.0, 0.4, (40, 2))
    other = np.random.uniform(0, SIDE, (20, 2))
    coords = np.vstack([a, b, other])

    cell_ids = [f"cell_{i}" for i in range(len(coords))]

    cell_meta = pd.DataFrame(
        {
            "cell_type": ["TypeA"] * 40 + ["TypeB"] * 40 + ["Other"] * 20,
        },
        index=cell_ids,
    )

    return CellTable(
        cell_ids=cell_ids,
        cell_metadata=cell_meta,
        spatial_coords=coords,
    )


# ===========================================================================
# Fixture 4: left / right regions
# ===========================================================================


@pytest.fixture
def halves():
    """
    Two disjoint squares splitting [0, 10]² at x = 5.

    They share the boundary line x = 5; 'right' comes second, so it
    wins for points on that line.
    """
    return {
        "left": box(0, 0, 5, SIDE),
        "right": box(5, 0, SIDE, SIDE),
    }
