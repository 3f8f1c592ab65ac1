"""
Tests for empty cell interpolation.
"""

import warnings

import numpy as np
import pytest

from height_grid.core.interpolation import (
    EmptyCellInterpolator,
    fill_by_interpolation,
    point_in_triangle,
)
from height_grid.core.validation import InterpolationWarning

nan = np.nan


class TestPointInTriangle:
    """Tests for the integer point inclusion test."""

    TRIANGLE = [(0, 0), (4, 0), (0, 4)]

    def test_inside(self):
        assert point_in_triangle(1, 1, self.TRIANGLE)

    def test_outside(self):
        assert not point_in_triangle(5, 5, self.TRIANGLE)
        assert not point_in_triangle(3, 3, self.TRIANGLE)

    def test_vertex_order_does_not_matter(self):
        reversed_triangle = list(reversed(self.TRIANGLE))
        assert point_in_triangle(1, 1, reversed_triangle)
        assert not point_in_triangle(3, 3, reversed_triangle)

    @pytest.mark.parametrize("diagonal", ["main", "anti"])
    def test_shared_edge_claimed_once(self, diagonal):
        """A point on the edge shared by two triangles belongs to exactly one."""
        if diagonal == "main":
            first = [(0, 0), (2, 0), (2, 2)]
            second = [(0, 0), (2, 2), (0, 2)]
        else:
            first = [(0, 0), (2, 0), (0, 2)]
            second = [(2, 0), (2, 2), (0, 2)]

        claims = [point_in_triangle(1, 1, t) for t in (first, second)]
        assert claims.count(True) == 1


class TestEmptyCellInterpolator:
    """Tests for Delaunay-based filling."""

    def test_linear_surface_is_reproduced(self, make_grid):
        """Heights of a plane are interpolated exactly."""
        heights = [
            [0.0, nan, 2.0],
            [nan, nan, nan],
            [4.0, nan, 6.0],
        ]
        grid = make_grid(heights)

        filled = EmptyCellInterpolator().fill(grid)

        assert filled >= 1
        assert grid.cell(1, 1).count == 1
        assert grid.cell(1, 1).height == pytest.approx(3.0)
        for row in range(3):
            for col in range(3):
                if grid.counts[row, col]:
                    assert grid.heights[row, col] == pytest.approx(col + 2 * row)

    def test_filled_cells_have_no_representative(self, make_grid):
        grid = make_grid([[0.0, nan, 2.0], [nan, nan, nan], [4.0, nan, 6.0]])
        fill_by_interpolation(grid)
        assert grid.cell(1, 1).point_index is None

    def test_statistics_updated(self, make_grid):
        grid = make_grid([[0.0, nan, 2.0], [nan, nan, nan], [4.0, nan, 6.0]])
        filled = fill_by_interpolation(grid)
        assert grid.non_empty_cells == 4 + filled

    def test_cells_outside_hull_stay_empty(self, make_grid):
        heights = [
            [1.0, 1.0, 1.0, nan],
            [1.0, 1.0, nan, nan],
            [1.0, nan, nan, nan],
            [nan, nan, nan, nan],
        ]
        grid = make_grid(heights)
        fill_by_interpolation(grid)

        assert grid.cell(3, 3).is_empty
        assert grid.cell(2, 2).is_empty

    def test_full_grid_is_untouched(self, make_grid):
        grid = make_grid([[1.0, 2.0], [3.0, 4.0]])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert fill_by_interpolation(grid) == 0

    def test_too_few_cells_warns(self, make_grid):
        """A single non-empty cell cannot be triangulated."""
        grid = make_grid([[5.0, nan, nan], [nan, nan, nan], [nan, nan, nan]])
        before = grid.heights.copy()

        with pytest.warns(InterpolationWarning, match="Not enough non-empty cells"):
            assert fill_by_interpolation(grid) == 0

        np.testing.assert_array_equal(grid.heights, before)
        assert grid.non_empty_cells == 1

    def test_collinear_cells_warn(self, make_grid):
        grid = make_grid([[1.0, 2.0, 3.0], [nan, nan, nan], [nan, nan, nan]])

        with pytest.warns(InterpolationWarning, match="triangulation"):
            assert fill_by_interpolation(grid) == 0
        assert grid.non_empty_cells == 3
