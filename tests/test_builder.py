"""
Tests for grid construction.
"""

import warnings

import numpy as np
import pytest

from height_grid.core.builder import GridBuilder, build_grid, grid_dimensions
from height_grid.core.config import RasterizeConfig
from height_grid.core.grid import BoundingBox, ProjectionType, plane_axes
from height_grid.core.validation import (
    BuildCancelledError,
    InvalidRegionError,
    SizeWarning,
)

REGION = BoundingBox([0, 0, 0], [2, 2, 10])


class TestPlaneAxes:
    """Tests for the projection plane convention."""

    def test_cyclic_axes(self):
        assert plane_axes(2) == (0, 1)
        assert plane_axes(0) == (1, 2)
        assert plane_axes(1) == (2, 0)


class TestGridDimensions:
    """Tests for grid size computation."""

    def test_ceil_of_extent(self):
        bbox = BoundingBox([0, 0, 0], [10.5, 4.0, 1.0])
        assert grid_dimensions(bbox, 2, 1.0) == (11, 4)

    def test_flat_region_raises(self):
        """A region flat along a plane axis cannot be rasterized."""
        bbox = BoundingBox([0, 0, 0], [10, 0, 5])
        with pytest.raises(InvalidRegionError, match="along Y"):
            grid_dimensions(bbox, 2, 1.0)

    def test_flat_on_projection_axis_is_fine(self):
        bbox = BoundingBox([0, 0, 3], [4, 4, 3])
        assert grid_dimensions(bbox, 2, 2.0) == (2, 2)


class TestCellAssignment:
    """Tests for point bucketing."""

    def test_basic_assignment(self, make_cloud):
        """Each point lands in floor((p - min) / step)."""
        cloud = make_cloud([(0, 0, 1), (1, 0, 2), (2, 2, 3)])
        grid = build_grid(cloud, RasterizeConfig(step=1.0))

        assert grid.shape == (2, 2)
        assert grid.cell(0, 0).height == 1
        assert grid.cell(0, 1).height == 2
        assert grid.cell(1, 0).is_empty
        # max corner is clamped into the last cell
        assert grid.cell(1, 1).height == 3
        assert grid.valid

    def test_counts_sum_to_points_inside(self, sample_point_cloud):
        grid = build_grid(sample_point_cloud, RasterizeConfig(step=2.0))
        assert int(grid.counts.sum()) == sample_point_cloud.num_points

    def test_points_outside_region_are_skipped(self, make_cloud):
        cloud = make_cloud([(0.5, 0.5, 1), (5, 5, 9), (-0.5, 0.5, 9)])
        grid = build_grid(cloud, RasterizeConfig(step=1.0), bbox=REGION)

        assert int(grid.counts.sum()) == 1
        assert grid.max_height == 1

    def test_other_projection_axis(self, make_cloud):
        """Projecting along X uses Y as columns and Z as rows."""
        cloud = make_cloud([(5, 0, 0), (3, 2, 2)])
        grid = build_grid(cloud, RasterizeConfig(step=1.0, projection_axis=0))

        assert grid.axes == (1, 2)
        assert grid.heights[0, 0] == 5
        assert grid.heights[1, 1] == 3


class TestProjectionModes:
    """Tests for per-cell height aggregation."""

    POINTS = [(0.1, 0.1, 5), (0.2, 0.2, 7), (0.3, 0.3, 7), (1.5, 1.5, 1)]

    def test_maximum_keeps_first_point_reaching_max(self, make_cloud):
        config = RasterizeConfig(step=1.0, height_mode=ProjectionType.MAXIMUM)
        grid = build_grid(make_cloud(self.POINTS), config, bbox=REGION)

        cell = grid.cell(0, 0)
        assert cell.height == 7
        assert cell.count == 3
        assert cell.point_index == 1

    def test_minimum(self, make_cloud):
        config = RasterizeConfig(step=1.0, height_mode=ProjectionType.MINIMUM)
        grid = build_grid(make_cloud(self.POINTS), config, bbox=REGION)

        assert grid.cell(0, 0).height == 5
        assert grid.cell(0, 0).point_index == 0
        assert grid.cell(1, 1).point_index == 3

    def test_average(self, make_cloud):
        """Heights 1, 5, 3 in one cell average to 3."""
        cloud = make_cloud([(0.5, 0.5, 1), (0.6, 0.6, 5), (0.7, 0.7, 3)])
        config = RasterizeConfig(step=1.0, height_mode=ProjectionType.AVERAGE)
        grid = build_grid(cloud, config, bbox=REGION)

        cell = grid.cell(0, 0)
        assert cell.count == 3
        assert cell.height == pytest.approx(3.0)
        assert cell.point_index is None

    def test_ties_across_chunks(self, make_cloud):
        """Chunking does not change which point represents a cell."""
        cloud = make_cloud(self.POINTS)
        whole = build_grid(cloud, RasterizeConfig(step=1.0), bbox=REGION)
        chunked = build_grid(cloud, RasterizeConfig(step=1.0, chunk_size=1), bbox=REGION)

        np.testing.assert_array_equal(whole.heights, chunked.heights)
        np.testing.assert_array_equal(whole.point_indices, chunked.point_indices)
        np.testing.assert_array_equal(whole.counts, chunked.counts)


class TestStatistics:
    """Tests for grid summary statistics."""

    def test_statistics_over_non_empty_cells(self, make_cloud):
        cloud = make_cloud([(0, 0, 1), (1, 0, 2), (2, 2, 3)])
        grid = build_grid(cloud, RasterizeConfig(step=1.0))

        assert grid.non_empty_cells == 3
        assert grid.min_height == 1
        assert grid.max_height == 3
        assert grid.mean_height == pytest.approx(2.0)
        assert not grid.is_full

    def test_statistics_dict(self, sample_point_cloud):
        grid = build_grid(sample_point_cloud, RasterizeConfig(step=1.0))
        stats = grid.statistics()

        assert stats["projection_axis"] == "Z"
        assert stats["plane_axes"] == "XY"
        assert stats["total_cells"] == grid.width * grid.height
        assert stats["empty_cells"] + stats["non_empty_cells"] == stats["total_cells"]


class TestScalarFields:
    """Tests for scalar field aggregation."""

    POINTS = [(0.1, 0.1, 1), (0.2, 0.2, 2), (0.3, 0.3, 3), (1.5, 1.5, 1)]
    VALUES = [10.0, np.nan, 30.0, np.nan]

    def _build(self, make_cloud, mode):
        cloud = make_cloud(self.POINTS, intensity=self.VALUES)
        config = RasterizeConfig(step=1.0, field_mode=mode)
        return build_grid(cloud, config, bbox=REGION)

    def test_fields_skipped_by_default(self, make_cloud):
        cloud = make_cloud(self.POINTS, intensity=self.VALUES)
        grid = build_grid(cloud, RasterizeConfig(step=1.0), bbox=REGION)
        assert grid.fields == {}

    def test_maximum_ignores_nan(self, make_cloud):
        grid = self._build(make_cloud, ProjectionType.MAXIMUM)
        layer = grid.fields[0]

        assert grid.field_names[0] == "intensity"
        assert layer[0, 0] == 30.0
        assert np.isnan(layer[1, 1])
        assert np.isnan(layer[1, 0])

    def test_minimum(self, make_cloud):
        grid = self._build(make_cloud, ProjectionType.MINIMUM)
        assert grid.fields[0][0, 0] == 10.0

    def test_average_divides_by_cell_population(self, make_cloud):
        grid = self._build(make_cloud, ProjectionType.AVERAGE)
        assert grid.fields[0][0, 0] == pytest.approx(40.0 / 3.0)
        assert np.isnan(grid.fields[0][1, 1])


class TestSizeConfirmation:
    """Tests for unusual grid sizes."""

    def test_single_cell_warns(self, make_cloud):
        cloud = make_cloud([(0, 0, 0), (1, 1, 1)])
        with pytest.warns(SizeWarning, match="only have 1 cell"):
            grid = build_grid(cloud, RasterizeConfig(step=5.0))
        assert grid.size == 1
        assert grid.cell(0, 0).count == 2

    def test_rejected_size_cancels(self, make_cloud):
        cloud = make_cloud([(0, 0, 0), (1, 1, 1)])
        seen = []

        def confirm(cells):
            seen.append(cells)
            return False

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", SizeWarning)
            with pytest.raises(BuildCancelledError):
                build_grid(cloud, RasterizeConfig(step=5.0), confirm_size=confirm)
        assert seen == [1]

    def test_large_grid_warns(self, make_cloud):
        cloud = make_cloud([(0, 0, 0), (10, 10, 1)])
        config = RasterizeConfig(step=1.0, max_cells=50)
        with pytest.warns(SizeWarning, match="more than 50"):
            build_grid(cloud, config, confirm_size=lambda cells: True)

    def test_confirm_not_called_for_normal_size(self, make_cloud):
        cloud = make_cloud([(0, 0, 0), (10, 10, 1)])

        def confirm(cells):
            raise AssertionError("should not be asked")

        grid = build_grid(cloud, RasterizeConfig(step=1.0), confirm_size=confirm)
        assert grid.shape == (10, 10)


class TestProgress:
    """Tests for progress reporting and cancellation."""

    def test_progress_is_reported_per_chunk(self, make_cloud):
        cloud = make_cloud([(i, i, i) for i in range(5)])
        calls = []

        def progress(done, total):
            calls.append((done, total))
            return True

        build_grid(cloud, RasterizeConfig(step=1.0, chunk_size=2), progress=progress)
        assert calls == [(2, 5), (4, 5), (5, 5)]

    def test_chunk_size_one_reports_every_point(self, make_cloud):
        """A chunk size of one gives a checkpoint after each point."""
        cloud = make_cloud([(i, i, i) for i in range(5)])
        calls = []

        def progress(done, total):
            calls.append(done)
            return True

        build_grid(cloud, RasterizeConfig(step=1.0, chunk_size=1), progress=progress)
        assert calls == [1, 2, 3, 4, 5]

    def test_cancel_aborts_build(self, make_cloud):
        cloud = make_cloud([(i, i, i) for i in range(5)])
        builder = GridBuilder(RasterizeConfig(step=1.0, chunk_size=1))

        with pytest.raises(BuildCancelledError):
            builder.build(cloud, progress=lambda done, total: done < 2)

    def test_source_cloud_unchanged(self, sample_point_cloud):
        before = sample_point_cloud.xyz.copy()
        build_grid(sample_point_cloud, RasterizeConfig(step=3.0))
        np.testing.assert_array_equal(before, sample_point_cloud.xyz)
