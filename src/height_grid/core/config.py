"""
Configuration values for grid construction and contour tracing.

Settings are plain dataclasses handed to each call, so the algorithms
never depend on ambient tool state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .grid import BoundingBox, EmptyCellPolicy, ProjectionType
from .validation import (
    ValidationError,
    validate_grid_step,
    validate_level_step,
    validate_min_vertex_count,
    validate_projection_axis,
)

# Grids above this many cells trigger a SizeWarning
MAX_GRID_CELLS = 10_000_000

AXIS_NAMES = {"x": 0, "y": 1, "z": 2}


@dataclass
class RasterizeConfig:
    """
    Grid construction settings.

    Attributes:
        step: Cell side length, in point coordinate units
        projection_axis: Axis used as height (0=X, 1=Y, 2=Z)
        height_mode: Aggregation of point heights within a cell
        field_mode: Aggregation of auxiliary scalar fields, or None to skip them
        empty_policy: What consumers do with cells that received no point
        custom_height: Height for empty cells under FILL_CUSTOM / INTERPOLATE
        chunk_size: Points scanned between two progress checkpoints. The
            default trades per-point granularity for a vectorized scan;
            chunk_size=1 reports progress and checks for cancellation
            after every point
        max_cells: Cell count above which a SizeWarning is issued
    """
    step: float
    projection_axis: int = 2
    height_mode: ProjectionType = ProjectionType.MAXIMUM
    field_mode: Optional[ProjectionType] = None
    empty_policy: EmptyCellPolicy = EmptyCellPolicy.LEAVE_EMPTY
    custom_height: float = 0.0
    chunk_size: int = 100_000
    max_cells: int = MAX_GRID_CELLS

    def __post_init__(self):
        self.step = validate_grid_step(self.step)
        self.projection_axis = validate_projection_axis(self.projection_axis)
        self.height_mode = ProjectionType(self.height_mode)
        if self.field_mode is not None:
            self.field_mode = ProjectionType(self.field_mode)
        self.empty_policy = EmptyCellPolicy(self.empty_policy)
        if self.chunk_size < 1:
            raise ValidationError(
                f"chunk_size must be at least 1, got {self.chunk_size}"
            )

    @property
    def interpolate_fields(self) -> bool:
        return self.field_mode is not None


@dataclass
class ContourConfig:
    """
    Contour tracing settings.

    Attributes:
        start_level: First iso-level
        level_step: Spacing between consecutive levels
        min_vertex_count: Lines with fewer vertices are dropped
        ignore_border: Split lines where they enter the outermost cell ring
    """
    start_level: float
    level_step: float
    min_vertex_count: int = 3
    ignore_border: bool = False

    def __post_init__(self):
        self.start_level = float(self.start_level)
        self.level_step = validate_level_step(self.level_step)
        self.min_vertex_count = validate_min_vertex_count(self.min_vertex_count)


def default_contour_config(bbox: BoundingBox, projection_axis: int) -> ContourConfig:
    """
    Contour settings suggested for a region: start at the lowest height
    and trace ten levels across the height range.
    """
    extent = float(bbox.extent[projection_axis])
    return ContourConfig(
        start_level=float(bbox.min_corner[projection_axis]),
        level_step=extent / 10.0 if extent > 0 else 1.0,
    )
