"""
Contour Extraction Module

Traces iso-height lines (contours) across a height grid at a sequence
of levels, optionally splitting them where they run through the
outermost ring of cells.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from skimage import measure

from .config import ContourConfig
from .grid import RasterGrid
from .progress import ProgressCallback, ProgressReporter
from .validation import (
    GridMemoryError,
    InvalidGridError,
    StartAboveRangeError,
)

logger = logging.getLogger(__name__)


@dataclass
class ContourLine:
    """
    One iso-height polyline.

    Attributes:
        level: Height of the line
        vertices: Nx3 world coordinates (the projection axis coordinate
            equals ``level``)
        closed: True if the line is a full loop that was never truncated
    """
    level: float
    vertices: np.ndarray
    closed: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    def length(self) -> float:
        """Polyline length (including the closing segment of loops)."""
        points = self.vertices
        if self.closed:
            points = np.vstack([points, points[:1]])
        return float(np.sum(np.linalg.norm(np.diff(points, axis=0), axis=1)))

    def to_shapely(self, plane_axes: Tuple[int, int] = (0, 1)):
        """
        Shapely geometry of the line in plane coordinates.

        Returns:
            LinearRing for closed lines, LineString otherwise
        """
        from shapely.geometry import LineString, LinearRing

        coords = self.vertices[:, list(plane_axes)]
        if self.closed and len(coords) >= 3:
            return LinearRing(coords)
        return LineString(coords)


class SplitState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"


class BorderSplitter:
    """
    Cuts a polyline into pieces wherever it enters the border zone.

    Feed the vertices in order with their inside/outside status. When an
    outside vertex interrupts a run of at least two inside vertices, the
    run is emitted as an open fragment; a lone inside vertex is dropped.
    """

    def __init__(self):
        self.state = SplitState.EMPTY
        self.buffer: List[Tuple[float, float]] = []
        self.truncated = False
        self.fragments: List[List[Tuple[float, float]]] = []

    def feed(self, vertex: Tuple[float, float], outside: bool) -> None:
        if not outside:
            self.buffer.append(vertex)
            self.state = SplitState.ACCUMULATING
            return

        self.truncated = True
        if self.state == SplitState.ACCUMULATING:
            if len(self.buffer) >= 2:
                self.fragments.append(self.buffer)
            self.buffer = []
            self.state = SplitState.EMPTY

    def finish(self) -> Optional[List[Tuple[float, float]]]:
        """
        Trailing fragment (at least two vertices) or None.

        The fragment is the whole line only if ``truncated`` is False.
        """
        tail = self.buffer if len(self.buffer) >= 2 else None
        self.buffer = []
        self.state = SplitState.EMPTY
        return tail


def lowest_height(grid: RasterGrid, empty_cell_height: float) -> float:
    """Lowest value of the traced field: empty cells count only if there are any."""
    if grid.is_full:
        return grid.min_height
    return min(grid.min_height, empty_cell_height)


def contour_levels(start_level: float, level_step: float, max_height: float) -> np.ndarray:
    """
    Levels ``start, start + step, ...`` up to and including max_height.

    Raises:
        StartAboveRangeError: If start_level is above max_height
    """
    if start_level > max_height:
        raise StartAboveRangeError(
            f"Start height {start_level} is above maximum height {max_height}"
        )
    count = 1 + int(math.floor((max_height - start_level) / level_step))
    return start_level + level_step * np.arange(count, dtype=np.float64)


class ContourExtractor:
    """
    Extracts contour lines from a RasterGrid.

    The grid is padded with a one-cell border one unit below the lowest
    height of the field (empty cells included), so every line around a
    populated area closes on itself and the border never adds a line of
    its own. Empty cells take the caller-supplied ``empty_cell_height``.
    """

    def __init__(self, config: ContourConfig):
        self.config = config

    def padded_heights(
        self,
        grid: RasterGrid,
        empty_cell_height: float,
        min_height: Optional[float] = None,
    ) -> np.ndarray:
        """Height field of shape (height+2, width+2) with a border at ``min_height - 1``."""
        if min_height is None:
            min_height = lowest_height(grid, empty_cell_height)
        try:
            padded = np.full(
                (grid.height + 2, grid.width + 2),
                min_height - 1.0,
                dtype=np.float64,
            )
        except (MemoryError, ValueError) as e:
            raise GridMemoryError("Not enough memory to trace contours") from e
        padded[1:-1, 1:-1] = np.where(grid.counts > 0, grid.heights, empty_cell_height)
        return padded

    def trace(
        self,
        grid: RasterGrid,
        empty_cell_height: float,
        progress: Optional[ProgressCallback] = None,
        min_height: Optional[float] = None,
    ) -> List[ContourLine]:
        """
        Trace contour lines at every level.

        Args:
            grid: A valid grid
            empty_cell_height: Height used for cells with no point
            progress: Optional callback, called once per level; cancelling
                stops tracing and returns the lines found so far
            min_height: Lowest height of the field; defaults to the grid minimum,
                lowered to ``empty_cell_height`` when the grid has empty cells

        Returns:
            Contour lines, ordered by level

        Raises:
            InvalidGridError: If the grid is not valid
            StartAboveRangeError: If the start level is above the grid's max height
        """
        if not grid.valid:
            raise InvalidGridError("Grid has not been built")

        config = self.config
        levels = contour_levels(config.start_level, config.level_step, grid.max_height)
        field = self.padded_heights(grid, empty_cell_height, min_height)

        reporter = ProgressReporter(progress, len(levels))
        lines: List[ContourLine] = []
        for z in levels:
            raw_lines = measure.find_contours(field, z)
            logger.debug("[Isolines] z=%s : %d lines", z, len(raw_lines))

            for raw in raw_lines:
                lines.extend(self._convert(grid, raw, float(z)))

            if not reporter.step():
                logger.info("Contour generation cancelled at level %s", z)
                break

        logger.info("%d iso-lines generated (%d levels)", len(lines), len(levels))
        return lines

    def _convert(self, grid: RasterGrid, raw: np.ndarray, z: float) -> List[ContourLine]:
        """Turn one traced line (padded row/col coordinates) into ContourLines."""
        closed = len(raw) > 2 and np.array_equal(raw[0], raw[-1])
        if closed:
            raw = raw[:-1]

        # undo the padding; x runs along columns, y along rows
        xs = raw[:, 1] - 1.0
        ys = raw[:, 0] - 1.0
        min_count = self.config.min_vertex_count

        if not self.config.ignore_border:
            if len(xs) < min_count:
                return []
            return [self._make_line(grid, xs, ys, z, closed)]

        outside = (xs < 1.0) | (ys < 1.0) | (xs + 1.0 >= grid.width) | (ys + 1.0 >= grid.height)
        splitter = BorderSplitter()
        for x, y, out in zip(xs, ys, outside):
            splitter.feed((x, y), bool(out))
        fragments = list(splitter.fragments)
        tail = splitter.finish()
        if tail is not None:
            fragments.append(tail)

        lines = []
        for fragment in fragments:
            if len(fragment) < min_count:
                continue
            fx, fy = np.asarray(fragment).T
            is_closed = closed and not splitter.truncated
            lines.append(self._make_line(grid, fx, fy, z, is_closed))
        return lines

    @staticmethod
    def _make_line(
        grid: RasterGrid,
        xs: np.ndarray,
        ys: np.ndarray,
        z: float,
        closed: bool,
    ) -> ContourLine:
        h, v = grid.axes
        vertices = np.empty((len(xs), 3), dtype=np.float64)
        vertices[:, h] = grid.bbox.min_corner[h] + xs * grid.step
        vertices[:, v] = grid.bbox.min_corner[v] + ys * grid.step
        vertices[:, grid.projection_axis] = z
        return ContourLine(level=z, vertices=vertices, closed=closed)


def trace_contours(
    grid: RasterGrid,
    config: ContourConfig,
    empty_cell_height: Optional[float] = None,
    progress: Optional[ProgressCallback] = None,
) -> List[ContourLine]:
    """
    Convenience wrapper around ``ContourExtractor(config).trace(...)``.

    Empty cells default to ``grid.min_height - 1`` (never above a level).
    """
    min_height = None
    if empty_cell_height is None:
        empty_cell_height = grid.min_height - 1.0
        min_height = grid.min_height
    return ContourExtractor(config).trace(
        grid, empty_cell_height, progress=progress, min_height=min_height
    )
