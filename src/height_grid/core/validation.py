"""
Input Validation Module

Provides validation functions, custom exceptions and warning categories
for the height_grid package. All validation functions provide clear,
actionable error messages.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Tuple, Union


class ValidationError(ValueError):
    """Base exception for validation errors with user-friendly messages."""
    pass


class GridStepError(ValidationError):
    """Invalid grid step (cell size) value."""
    pass


class InvalidRegionError(ValidationError):
    """Bounding region has a non-positive extent on a grid plane axis."""
    pass


class StartAboveRangeError(ValidationError):
    """Contour start level is above the grid's maximum height."""
    pass


class InvalidGridError(ValidationError):
    """Grid has not been (successfully) built yet."""
    pass


class EmptyResultError(ValidationError):
    """Calculation produced no results."""
    pass


class FilePermissionError(ValidationError):
    """Cannot write to specified path."""
    pass


class GridMemoryError(MemoryError):
    """Not enough memory to allocate the grid or one of its field layers."""
    pass


class BuildCancelledError(Exception):
    """Grid construction was aborted by the caller."""
    pass


class SizeWarning(UserWarning):
    """The requested grid has an unusual number of cells (1, or very many)."""

    def __init__(self, cell_count: int, message: str = ""):
        self.cell_count = cell_count
        super().__init__(message or f"Grid will have {cell_count:,} cells")


class InterpolationWarning(UserWarning):
    """Empty cells could not be interpolated."""
    pass


def validate_grid_step(step: float, context: str = "Grid step") -> float:
    """
    Validate grid step is a positive number.

    Args:
        step: The cell size to validate
        context: Description of what this step is for (used in error messages)

    Returns:
        The validated step as a float

    Raises:
        GridStepError: If step is None, not a number, or <= 0
    """
    if step is None:
        raise GridStepError(f"{context} cannot be None")

    if isinstance(step, bool) or not isinstance(step, (int, float)):
        raise GridStepError(
            f"{context} must be a number, got {type(step).__name__}"
        )

    if not step > 0:
        raise GridStepError(
            f"{context} must be positive, got {step}. "
            "Pick a cell size in the same units as the point coordinates."
        )

    return float(step)


def validate_level_step(step: float, context: str = "Contour step") -> float:
    """Validate the spacing between two consecutive contour levels."""
    if step is None or isinstance(step, bool) or not isinstance(step, (int, float)):
        raise ValidationError(f"{context} must be a number, got {step!r}")

    if not step > 0:
        raise ValidationError(f"{context} must be positive, got {step}")

    return float(step)


def validate_min_vertex_count(count: int) -> int:
    """Validate the minimum number of vertices a contour line must keep."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError(
            f"Minimum vertex count must be an integer, got {type(count).__name__}"
        )

    if count < 2:
        raise ValidationError(
            f"Minimum vertex count must be at least 2, got {count}"
        )

    return count


def validate_projection_axis(axis: int) -> int:
    """Validate the projection (height) axis index: 0=X, 1=Y, 2=Z."""
    if isinstance(axis, bool) or not isinstance(axis, int) or not 0 <= axis <= 2:
        raise ValidationError(
            f"Projection axis must be 0 (X), 1 (Y) or 2 (Z), got {axis!r}"
        )
    return axis


def validate_region_extent(
    extent_h: float,
    extent_v: float,
    axes: Tuple[int, int],
) -> None:
    """
    Validate that the bounding region spans a non-empty grid plane.

    Raises:
        InvalidRegionError: If either plane extent is <= 0
    """
    if not (extent_h > 0 and extent_v > 0):
        names = "XYZ"
        raise InvalidRegionError(
            f"Invalid bounding region: extent along {names[axes[0]]} is {extent_h} "
            f"and along {names[axes[1]]} is {extent_v}. "
            "Both plane extents must be positive; check the projection axis."
        )


def validate_grid_dimensions(
    width: int,
    height: int,
    step: float,
    max_cells: int,
) -> int:
    """
    Validate grid dimensions and warn on unusual sizes.

    Args:
        width: Number of columns
        height: Number of rows
        step: Grid cell size
        max_cells: Cell count above which a SizeWarning is issued

    Returns:
        Total number of cells

    Raises:
        ValidationError: If dimensions are invalid
    """
    if width <= 0 or height <= 0:
        raise ValidationError(
            f"Invalid grid dimensions ({width} x {height}) for step {step}."
        )

    total_cells = width * height
    if total_cells == 1:
        warnings.warn(
            SizeWarning(total_cells, "The generated grid will only have 1 cell."),
            stacklevel=3,
        )
    elif total_cells > max_cells:
        warnings.warn(
            SizeWarning(
                total_cells,
                f"The generated grid will have {total_cells:,} cells "
                f"(more than {max_cells:,}). Consider using a coarser step.",
            ),
            stacklevel=3,
        )

    return total_cells


def validate_output_path(filepath: Union[str, Path], context: str = "output file") -> Path:
    """
    Validate output path is writable before attempting to write.

    Args:
        filepath: The path to validate
        context: Description of what will be written (used in error messages)

    Returns:
        The validated path as a Path object

    Raises:
        FilePermissionError: If directory doesn't exist or isn't writable
    """
    path = Path(filepath)
    parent = path.parent

    if str(parent) == '.':
        parent = Path.cwd()

    if not parent.exists():
        raise FilePermissionError(
            f"Cannot write {context}: directory '{parent}' does not exist. "
            "Create the directory first or specify a different path."
        )

    if not os.access(parent, os.W_OK):
        raise FilePermissionError(
            f"Cannot write {context}: no write permission for directory '{parent}'."
        )

    if path.exists() and not os.access(path, os.W_OK):
        raise FilePermissionError(
            f"Cannot overwrite {context}: file '{path}' exists but is not writable."
        )

    return path
