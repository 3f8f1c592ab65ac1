"""
Empty Cell Interpolation Module

Fills empty grid cells lying inside the convex hull of the non-empty
ones, by Delaunay triangulation of the non-empty cell positions and
barycentric interpolation of their heights.
"""

from __future__ import annotations

import logging
import warnings
from typing import Sequence, Tuple

import numpy as np
from scipy.spatial import Delaunay, QhullError

from .grid import RasterGrid
from .validation import InterpolationWarning

logger = logging.getLogger(__name__)

Vertex = Tuple[int, int]


def point_in_triangle(col: int, row: int, triangle: Sequence[Vertex]) -> bool:
    """
    Ray-crossing inclusion test of an integer position in a triangle.

    An edge only counts when ``row`` lies in its half-open vertical span,
    so cells on an edge shared by two triangles are claimed by exactly
    one of them.
    """
    inside = False
    for k in range(3):
        x1, y1 = triangle[k]
        x2, y2 = triangle[(k + 1) % 3]
        if y2 <= row < y1 or y1 <= row < y2:
            t = (col - x2) * (y1 - y2) - (x1 - x2) * (row - y2)
            if y1 < y2:
                t = -t
            if t < 0:
                inside = not inside
    return inside


class EmptyCellInterpolator:
    """
    Fills empty cells of a grid in place.

    Cells outside the convex hull of the non-empty cells are left empty.
    Filled cells get ``count = 1`` and no representative point.
    """

    def fill(self, grid: RasterGrid) -> int:
        """
        Interpolate the empty cells of ``grid``.

        Returns:
            Number of cells that were filled. Issues an InterpolationWarning
            (and fills nothing) when fewer than 3 cells are populated or the
            triangulation fails.
        """
        non_empty = int(np.count_nonzero(grid.counts))
        if non_empty == grid.size:
            return 0
        if non_empty <= 2:
            self._warn(
                f"Not enough non-empty cells to interpolate ({non_empty}); "
                "at least 3 are required"
            )
            return 0

        rows, cols = np.nonzero(grid.counts)
        points = np.column_stack([cols, rows])

        try:
            triangulation = Delaunay(points)
        except (QhullError, ValueError) as e:
            self._warn(f"Empty cells interpolation failed: triangulation said '{e}'")
            return 0

        logger.debug("Interpolating empty cells over %d triangles", len(triangulation.simplices))

        filled = 0
        for simplex in triangulation.simplices:
            filled += self._fill_triangle(grid, points[simplex])

        if filled:
            grid.update_statistics()
        logger.debug("%d empty cells interpolated", filled)
        return filled

    @staticmethod
    def _fill_triangle(grid: RasterGrid, vertices: np.ndarray) -> int:
        """Fill the empty cells covered by one triangle."""
        triangle = [(int(x), int(y)) for x, y in vertices]
        (xa, ya), (xb, yb), (xc, yc) = triangle
        val_a = grid.heights[ya, xa]
        val_b = grid.heights[yb, xb]
        val_c = grid.heights[yc, xc]

        det = (yb - yc) * (xa - xc) + (xc - xb) * (ya - yc)
        if det == 0:
            return 0

        x_min, y_min = vertices.min(axis=0)
        x_max, y_max = vertices.max(axis=0)

        filled = 0
        for j in range(int(y_min), int(y_max) + 1):
            for i in range(int(x_min), int(x_max) + 1):
                if grid.counts[j, i]:
                    continue
                if not point_in_triangle(i, j, triangle):
                    continue
                l1 = ((yb - yc) * (i - xc) + (xc - xb) * (j - yc)) / det
                l2 = ((yc - ya) * (i - xc) + (xa - xc) * (j - yc)) / det
                l3 = 1.0 - l1 - l2
                grid.heights[j, i] = l1 * val_a + l2 * val_b + l3 * val_c
                grid.counts[j, i] = 1
                filled += 1
        return filled

    @staticmethod
    def _warn(message: str) -> None:
        logger.warning(message)
        warnings.warn(message, InterpolationWarning, stacklevel=3)


def fill_by_interpolation(grid: RasterGrid) -> int:
    """Interpolate the empty cells of ``grid`` in place; see EmptyCellInterpolator."""
    return EmptyCellInterpolator().fill(grid)
