"""
Rasterize Session

Holds the state of one rasterization session: the source cloud, the
current grid and the contour lines traced from it. A rebuild replaces
the grid only when it succeeds; contour lines are cleared whenever the
grid is rebuilt.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..io.point_cloud import PointCloud
from ..io.resample import grid_height_matrix, grid_to_point_cloud
from .builder import GridBuilder
from .config import ContourConfig, RasterizeConfig, default_contour_config
from .contours import ContourExtractor, ContourLine
from .grid import BoundingBox, EmptyCellPolicy, RasterGrid, resolve_empty_cell_height
from .interpolation import EmptyCellInterpolator
from .progress import ProgressCallback
from .validation import InvalidGridError

logger = logging.getLogger(__name__)


class RasterSession:
    """
    Rasterization of one point cloud with one set of settings.

    Args:
        cloud: Source point cloud
        config: Grid construction settings
        bbox: Region to rasterize (defaults to the cloud's bounds)
    """

    def __init__(
        self,
        cloud: PointCloud,
        config: RasterizeConfig,
        bbox: Optional[BoundingBox] = None,
    ):
        self.cloud = cloud
        self.config = config
        self.bbox = bbox if bbox is not None else BoundingBox(*cloud.bounds)
        self.grid: Optional[RasterGrid] = None
        self.contour_lines: List[ContourLine] = []

    @property
    def has_valid_grid(self) -> bool:
        return self.grid is not None and self.grid.valid

    def update_grid(
        self,
        progress: Optional[ProgressCallback] = None,
        confirm_size: Optional[Callable[[int], bool]] = None,
    ) -> RasterGrid:
        """
        Build a new grid and make it current.

        Empty cells are interpolated when the session's policy is
        INTERPOLATE. On failure the previous grid stays current.
        """
        self.remove_contour_lines()

        grid = GridBuilder(self.config).build(
            self.cloud, self.bbox, progress=progress, confirm_size=confirm_size
        )
        if self.config.empty_policy == EmptyCellPolicy.INTERPOLATE:
            EmptyCellInterpolator().fill(grid)

        self.grid = grid
        return grid

    def _require_grid(self) -> RasterGrid:
        if not self.has_valid_grid:
            raise InvalidGridError("No valid grid: call update_grid() first")
        return self.grid

    def contour_field_heights(self) -> Tuple[float, float]:
        """
        Heights used when tracing contours.

        Returns:
            (empty cell height, lowest height of the field). The lowest
            height includes a custom empty-cell height below the grid range.
        """
        grid = self._require_grid()
        policy, height, min_height, _ = resolve_empty_cell_height(
            grid, self.config.empty_policy, self.config.custom_height
        )
        if policy == EmptyCellPolicy.LEAVE_EMPTY:
            return min_height - 1.0, min_height
        return height, min_height

    def empty_cell_height(self) -> float:
        """Height given to empty cells when tracing contours."""
        return self.contour_field_heights()[0]

    def default_contour_config(self) -> ContourConfig:
        return default_contour_config(self.bbox, self.config.projection_axis)

    def generate_contours(
        self,
        config: Optional[ContourConfig] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> List[ContourLine]:
        """Trace contour lines on the current grid, replacing previous ones."""
        grid = self._require_grid()
        self.remove_contour_lines()
        config = config or self.default_contour_config()
        empty_height, min_height = self.contour_field_heights()
        self.contour_lines = ContourExtractor(config).trace(
            grid, empty_height, progress=progress, min_height=min_height
        )
        return self.contour_lines

    def remove_contour_lines(self) -> None:
        self.contour_lines = []

    def to_point_cloud(
        self,
        generate_count_field: bool = False,
        resample: bool = False,
    ) -> PointCloud:
        """Export the current grid as a point cloud."""
        grid = self._require_grid()
        pc = grid_to_point_cloud(
            grid,
            policy=self.config.empty_policy,
            custom_height=self.config.custom_height,
            generate_count_field=generate_count_field,
            include_fields=self.config.interpolate_fields,
            source=self.cloud,
            resample=resample,
        )
        logger.info("Grid exported as %d points", pc.num_points)
        return pc

    def height_matrix(self) -> np.ndarray:
        """Height per cell with the session's empty-cell policy applied."""
        return grid_height_matrix(
            self._require_grid(), self.config.empty_policy, self.config.custom_height
        )
