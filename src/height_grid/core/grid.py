"""
Raster Grid Module

In-memory model of a height grid: a regular 2D array of cells obtained
by projecting a point cloud along one axis, with optional per-cell
auxiliary (scalar field) layers and aggregate height statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from .validation import GridMemoryError

# Marks a cell without a representative source point
NO_POINT = -1


class ProjectionType(Enum):
    """How the values of all points falling in a cell are combined."""
    MINIMUM = "min"
    AVERAGE = "avg"
    MAXIMUM = "max"


class EmptyCellPolicy(Enum):
    """Height given to cells that received no point."""
    LEAVE_EMPTY = "empty"
    FILL_MINIMUM = "min"
    FILL_AVERAGE = "avg"
    FILL_MAXIMUM = "max"
    FILL_CUSTOM = "custom"
    INTERPOLATE = "interpolate"


def plane_axes(projection_axis: int) -> Tuple[int, int]:
    """
    Grid plane axes for a projection axis.

    Returns:
        (horizontal, vertical) axis indices, in cyclic order after the
        projection axis (Z -> X, Y; X -> Y, Z; Y -> Z, X)
    """
    horizontal = (projection_axis + 1) % 3
    vertical = (horizontal + 1) % 3
    return horizontal, vertical


@dataclass(frozen=True)
class Cell:
    """Read-only view of a single grid cell."""
    height: float
    count: int
    point_index: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.count == 0


@dataclass
class BoundingBox:
    """Axis-aligned 3D box given by its minimum and maximum corners."""
    min_corner: np.ndarray
    max_corner: np.ndarray

    def __post_init__(self):
        self.min_corner = np.asarray(self.min_corner, dtype=np.float64).reshape(3)
        self.max_corner = np.asarray(self.max_corner, dtype=np.float64).reshape(3)

    @classmethod
    def from_points(cls, xyz: np.ndarray) -> BoundingBox:
        """Tight bounding box of an Nx3 coordinate array."""
        if len(xyz) == 0:
            raise ValueError("Cannot compute the bounding box of an empty point set")
        return cls(np.min(xyz, axis=0), np.max(xyz, axis=0))

    @property
    def extent(self) -> np.ndarray:
        """Box diagonal (max - min) per axis."""
        return self.max_corner - self.min_corner

    @property
    def center(self) -> np.ndarray:
        return (self.min_corner + self.max_corner) / 2

    def is_valid(self) -> bool:
        return bool(np.all(np.isfinite(self.min_corner))
                    and np.all(np.isfinite(self.max_corner))
                    and np.all(self.max_corner >= self.min_corner))


@dataclass
class RasterGrid:
    """
    Regular grid of cells in the plane orthogonal to the projection axis.

    Cells are stored as row-major arrays of shape (height, width):
    cell (row, col) is at flat index ``row * width + col``. Row 0 holds
    the minimum value along the vertical plane axis.

    Attributes:
        width: Number of columns (horizontal plane axis)
        height: Number of rows (vertical plane axis)
        step: Cell side length
        bbox: Bounding region the grid was built from
        projection_axis: Axis used as "height" (0=X, 1=Y, 2=Z)
        heights: Aggregated height per cell
        counts: Number of points per cell (0 = empty)
        point_indices: Representative source point per cell (MIN/MAX only)
        fields: Aggregated auxiliary field layers, keyed by source field index
        field_names: Source field names, same keys as ``fields``
        height_mode: Aggregation used for the heights
    """
    width: int
    height: int
    step: float
    bbox: BoundingBox
    projection_axis: int
    heights: np.ndarray
    counts: np.ndarray
    point_indices: np.ndarray
    fields: Dict[int, np.ndarray] = field(default_factory=dict)
    field_names: Dict[int, str] = field(default_factory=dict)
    height_mode: Optional[ProjectionType] = None

    min_height: float = 0.0
    max_height: float = 0.0
    mean_height: float = 0.0
    height_sum: float = 0.0
    non_empty_cells: int = 0
    valid: bool = False

    @classmethod
    def allocate(
        cls,
        width: int,
        height: int,
        step: float,
        bbox: BoundingBox,
        projection_axis: int,
    ) -> RasterGrid:
        """
        Allocate an empty (invalid) grid.

        Raises:
            GridMemoryError: If the cell arrays cannot be allocated
        """
        try:
            heights = np.zeros((height, width), dtype=np.float64)
            counts = np.zeros((height, width), dtype=np.uint32)
            point_indices = np.full((height, width), NO_POINT, dtype=np.int64)
        except (MemoryError, ValueError) as e:
            raise GridMemoryError(
                f"Not enough memory to allocate a {width} x {height} grid"
            ) from e

        return cls(
            width=width,
            height=height,
            step=step,
            bbox=bbox,
            projection_axis=projection_axis,
            heights=heights,
            counts=counts,
            point_indices=point_indices,
        )

    def add_field_layer(self, index: int, name: str) -> np.ndarray:
        """
        Allocate a NaN-initialised auxiliary layer for a source field.

        Raises:
            GridMemoryError: If the layer cannot be allocated
        """
        try:
            layer = np.full((self.height, self.width), np.nan, dtype=np.float64)
        except (MemoryError, ValueError) as e:
            raise GridMemoryError(
                f"Not enough memory to allocate the grid layer for field '{name}'"
            ) from e
        self.fields[index] = layer
        self.field_names[index] = name
        return layer

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid dimensions (rows, cols)."""
        return (self.height, self.width)

    @property
    def size(self) -> int:
        return self.width * self.height

    @property
    def axes(self) -> Tuple[int, int]:
        """(horizontal, vertical) plane axis indices."""
        return plane_axes(self.projection_axis)

    @property
    def origin(self) -> Tuple[float, float]:
        """Plane coordinates of the grid's minimum corner."""
        h, v = self.axes
        return (float(self.bbox.min_corner[h]), float(self.bbox.min_corner[v]))

    @property
    def empty_mask(self) -> np.ndarray:
        return self.counts == 0

    @property
    def is_full(self) -> bool:
        return self.non_empty_cells == self.size

    def cell(self, row: int, col: int) -> Cell:
        """Return the cell at (row, col)."""
        index = int(self.point_indices[row, col])
        return Cell(
            height=float(self.heights[row, col]),
            count=int(self.counts[row, col]),
            point_index=None if index == NO_POINT else index,
        )

    def cell_to_coord(self, row: int, col: int) -> Tuple[float, float]:
        """Plane coordinates of a cell's minimum corner."""
        x0, y0 = self.origin
        return (x0 + col * self.step, y0 + row * self.step)

    def update_statistics(self) -> None:
        """
        Recompute min/max/mean height and the non-empty cell count.

        Scans the non-empty cells in row-major order; the running sum is
        kept in ``height_sum`` and only divided once at the end.
        """
        self.min_height = self.max_height = self.mean_height = 0.0
        self.height_sum = 0.0
        self.non_empty_cells = 0

        values = self.heights[self.counts > 0]
        if values.size == 0:
            return

        self.min_height = float(values.min())
        self.max_height = float(values.max())
        self.height_sum = float(np.sum(values))
        self.non_empty_cells = int(values.size)
        self.mean_height = self.height_sum / self.non_empty_cells

    def statistics(self) -> dict:
        """Summary of the grid suitable for display or JSON export."""
        h, v = self.axes
        return {
            "width": self.width,
            "height": self.height,
            "step": self.step,
            "projection_axis": "XYZ"[self.projection_axis],
            "plane_axes": "XYZ"[h] + "XYZ"[v],
            "origin": list(self.origin),
            "total_cells": self.size,
            "non_empty_cells": self.non_empty_cells,
            "empty_cells": self.size - self.non_empty_cells,
            "min_height": self.min_height,
            "max_height": self.max_height,
            "mean_height": self.mean_height,
            "fields": [self.field_names[k] for k in sorted(self.field_names)],
        }


def resolve_empty_cell_height(
    grid: RasterGrid,
    policy: EmptyCellPolicy,
    custom_height: float = 0.0,
) -> Tuple[EmptyCellPolicy, float, float, float]:
    """
    Work out the value consumers should give to empty cells.

    Args:
        grid: A built grid
        policy: Requested empty-cell policy
        custom_height: Height used by FILL_CUSTOM and INTERPOLATE for the
            cells that are still empty

    Returns:
        (effective policy, empty cell height, min height, max height). The
        min/max range is widened to include a custom height, and
        FILL_AVERAGE is reported as FILL_CUSTOM with the mean height.
    """
    empty_height = 0.0
    min_height = grid.min_height
    max_height = grid.max_height

    if policy == EmptyCellPolicy.FILL_MINIMUM:
        empty_height = grid.min_height
    elif policy == EmptyCellPolicy.FILL_MAXIMUM:
        empty_height = grid.max_height
    elif policy in (EmptyCellPolicy.FILL_CUSTOM, EmptyCellPolicy.INTERPOLATE):
        if not grid.is_full:
            if custom_height <= grid.min_height:
                min_height = custom_height
            elif custom_height >= grid.max_height:
                max_height = custom_height
            empty_height = custom_height
    elif policy == EmptyCellPolicy.FILL_AVERAGE:
        policy = EmptyCellPolicy.FILL_CUSTOM
        empty_height = grid.mean_height

    return policy, float(empty_height), float(min_height), float(max_height)
