"""
Grid Builder Module

Projects a point cloud onto a regular grid along one axis and
aggregates point heights (and optionally scalar fields) per cell.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Tuple

import numpy as np

from ..io.point_cloud import PointCloud
from .config import RasterizeConfig
from .grid import BoundingBox, ProjectionType, RasterGrid, plane_axes
from .progress import ProgressCallback, ProgressReporter
from .validation import (
    BuildCancelledError,
    validate_grid_dimensions,
    validate_region_extent,
)

logger = logging.getLogger(__name__)


def grid_dimensions(
    bbox: BoundingBox,
    projection_axis: int,
    step: float,
) -> Tuple[int, int]:
    """
    Number of columns and rows needed to cover a region.

    Raises:
        InvalidRegionError: If the region is flat along a plane axis
    """
    h, v = plane_axes(projection_axis)
    extent = bbox.extent
    validate_region_extent(float(extent[h]), float(extent[v]), (h, v))
    width = int(math.ceil(extent[h] / step))
    height = int(math.ceil(extent[v] / step))
    return width, height


def _best_per_cell(
    cells: np.ndarray,
    values: np.ndarray,
    indices: np.ndarray,
    mode: ProjectionType,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Extreme value per cell and the first point (in arrival order) holding it.

    Returns:
        (unique cells, extreme values, point indices)
    """
    key = values if mode == ProjectionType.MINIMUM else -values
    order = np.lexsort((indices, key, cells))
    sorted_cells = cells[order]
    first = np.ones(len(order), dtype=bool)
    first[1:] = sorted_cells[1:] != sorted_cells[:-1]
    chosen = order[first]
    return cells[chosen], values[chosen], indices[chosen]


class GridBuilder:
    """
    Builds a RasterGrid from a point cloud.

    Each point is bucketed by ``floor((point - region_min) / step)`` on
    the two plane axes. Points on the region's maximum edge go to the
    last row/column; points outside the region are skipped.

    Per cell, the first point sets the height and the representative
    point. MINIMUM/MAXIMUM keep the extreme height and the first point
    that reached it; AVERAGE sums heights and divides once at the end.
    Scalar fields are aggregated the same way, ignoring NaN values.
    """

    def __init__(self, config: RasterizeConfig):
        self.config = config

    def build(
        self,
        cloud: PointCloud,
        bbox: Optional[BoundingBox] = None,
        progress: Optional[ProgressCallback] = None,
        confirm_size: Optional[Callable[[int], bool]] = None,
    ) -> RasterGrid:
        """
        Build a new grid.

        Args:
            cloud: Source points (never modified)
            bbox: Region to rasterize (defaults to the cloud's bounds)
            progress: Optional progress/cancellation callback
            confirm_size: Called with the cell count when a SizeWarning is
                raised; returning False aborts the build

        Returns:
            A valid RasterGrid

        Raises:
            InvalidRegionError: If the region is flat along a plane axis
            GridMemoryError: If the grid arrays cannot be allocated
            BuildCancelledError: If the build was aborted or cancelled
        """
        config = self.config
        if bbox is None:
            bbox = BoundingBox(*cloud.bounds)

        width, height = grid_dimensions(bbox, config.projection_axis, config.step)
        total_cells = validate_grid_dimensions(width, height, config.step, config.max_cells)
        unusual = total_cells == 1 or total_cells > config.max_cells
        if unusual and confirm_size is not None and not confirm_size(total_cells):
            raise BuildCancelledError(f"Grid of {total_cells:,} cells rejected")

        logger.debug(
            "Grid generation: %d points, %d x %d cells (step=%s)",
            cloud.num_points, width, height, config.step,
        )

        grid = RasterGrid.allocate(width, height, config.step, bbox, config.projection_axis)
        grid.height_mode = config.height_mode
        if config.interpolate_fields:
            for index, name in enumerate(cloud.field_names):
                grid.add_field_layer(index, name)

        reporter = ProgressReporter(progress, cloud.num_points)
        for start in range(0, cloud.num_points, config.chunk_size):
            stop = min(start + config.chunk_size, cloud.num_points)
            self._accumulate(grid, cloud, start, stop)
            if not reporter.step(stop - start):
                logger.info("Grid generation cancelled after %d points", stop)
                raise BuildCancelledError("Grid generation cancelled by user")

        self._finalize(grid)
        grid.update_statistics()
        grid.valid = True

        logger.debug(
            "Grid ready: %d non-empty cells, heights %s to %s",
            grid.non_empty_cells, grid.min_height, grid.max_height,
        )
        return grid

    def bucket(
        self,
        grid: RasterGrid,
        xyz: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Flat cell index of each point.

        Returns:
            (flat cell indices, mask of points inside the grid)
        """
        h, v = grid.axes
        relative = xyz - grid.bbox.min_corner
        extent = grid.bbox.extent

        i = np.floor(relative[:, h] / grid.step).astype(np.int64)
        j = np.floor(relative[:, v] / grid.step).astype(np.int64)

        # points exactly on the max edge belong to the last column/row
        i[(i == grid.width) & (relative[:, h] <= extent[h])] = grid.width - 1
        j[(j == grid.height) & (relative[:, v] <= extent[v])] = grid.height - 1

        inside = (i >= 0) & (i < grid.width) & (j >= 0) & (j < grid.height)
        return j * grid.width + i, inside

    def _accumulate(self, grid: RasterGrid, cloud: PointCloud, start: int, stop: int) -> None:
        """Merge points [start, stop) into the grid."""
        mode = self.config.height_mode
        cells, inside = self.bucket(grid, cloud.xyz[start:stop])
        cells = cells[inside]
        if cells.size == 0:
            return

        values = cloud.xyz[start:stop, grid.projection_axis][inside]
        heights = grid.heights.reshape(-1)
        counts = grid.counts.reshape(-1)

        if mode == ProjectionType.AVERAGE:
            sums = np.bincount(cells, weights=values, minlength=grid.size)
            hit = np.bincount(cells, minlength=grid.size) > 0
            heights[hit] += sums[hit]
        else:
            indices = np.arange(start, stop, dtype=np.int64)[inside]
            best_cells, best_values, best_indices = _best_per_cell(
                cells, values, indices, mode
            )
            current = heights[best_cells]
            if mode == ProjectionType.MINIMUM:
                better = best_values < current
            else:
                better = best_values > current
            # the first point landing in an empty cell always wins
            update = (counts[best_cells] == 0) | better
            heights[best_cells[update]] = best_values[update]
            grid.point_indices.reshape(-1)[best_cells[update]] = best_indices[update]

        if grid.fields:
            self._accumulate_fields(grid, cloud, start, stop, inside, cells)

        counts += np.bincount(cells, minlength=grid.size).astype(np.uint32)

    def _accumulate_fields(
        self,
        grid: RasterGrid,
        cloud: PointCloud,
        start: int,
        stop: int,
        inside: np.ndarray,
        cells: np.ndarray,
    ) -> None:
        mode = self.config.field_mode
        for index, layer in grid.fields.items():
            flat = layer.reshape(-1)
            values = cloud.field_values(index)[start:stop][inside]
            valid = ~np.isnan(values)
            if not np.any(valid):
                continue
            valid_cells = cells[valid]
            valid_values = values[valid]

            if mode == ProjectionType.MINIMUM:
                np.fmin.at(flat, valid_cells, valid_values)
            elif mode == ProjectionType.MAXIMUM:
                np.fmax.at(flat, valid_cells, valid_values)
            else:
                sums = np.bincount(valid_cells, weights=valid_values, minlength=grid.size)
                hit = np.bincount(valid_cells, minlength=grid.size) > 0
                unseeded = hit & np.isnan(flat)
                flat[unseeded] = 0.0
                flat[hit] += sums[hit]

    def _finalize(self, grid: RasterGrid) -> None:
        """Turn AVERAGE running sums into means."""
        counts = grid.counts

        if self.config.field_mode == ProjectionType.AVERAGE:
            occupied = counts > 0
            for layer in grid.fields.values():
                ready = occupied & ~np.isnan(layer)
                layer[ready] /= counts[ready]

        if self.config.height_mode == ProjectionType.AVERAGE:
            shared = counts > 1
            grid.heights[shared] /= counts[shared]


def build_grid(
    cloud: PointCloud,
    config: RasterizeConfig,
    bbox: Optional[BoundingBox] = None,
    progress: Optional[ProgressCallback] = None,
    confirm_size: Optional[Callable[[int], bool]] = None,
) -> RasterGrid:
    """Convenience wrapper around ``GridBuilder(config).build(...)``."""
    return GridBuilder(config).build(cloud, bbox, progress=progress, confirm_size=confirm_size)
