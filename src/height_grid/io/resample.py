"""
Grid consumers: conversion of a built grid back into points or a
plain height matrix, applying an empty-cell policy.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.grid import (
    NO_POINT,
    EmptyCellPolicy,
    ProjectionType,
    RasterGrid,
    resolve_empty_cell_height,
)
from ..core.validation import EmptyResultError, InvalidGridError, ValidationError
from .point_cloud import PointCloud

HEIGHT_FIELD_NAME = "height"
COUNT_FIELD_NAME = "population"


def grid_height_matrix(
    grid: RasterGrid,
    policy: EmptyCellPolicy = EmptyCellPolicy.LEAVE_EMPTY,
    custom_height: float = 0.0,
) -> np.ndarray:
    """
    Height per cell as a (height, width) array.

    Empty cells hold NaN under LEAVE_EMPTY, or the policy's height
    otherwise. Row 0 is the minimum along the vertical plane axis.
    """
    if not grid.valid:
        raise InvalidGridError("Grid has not been built")

    policy, empty_height, _, _ = resolve_empty_cell_height(grid, policy, custom_height)
    fill = np.nan if policy == EmptyCellPolicy.LEAVE_EMPTY else empty_height
    return np.where(grid.counts > 0, grid.heights, fill)


def grid_to_point_cloud(
    grid: RasterGrid,
    policy: EmptyCellPolicy = EmptyCellPolicy.LEAVE_EMPTY,
    custom_height: float = 0.0,
    generate_count_field: bool = False,
    include_fields: bool = True,
    source: Optional[PointCloud] = None,
    resample: bool = False,
) -> PointCloud:
    """
    Convert a grid into a point cloud, one point per cell.

    Non-empty cells become a point at the cell's minimum corner with the
    cell height on the projection axis; empty cells are added too unless
    the policy is LEAVE_EMPTY. Each point carries a ``height`` field, an
    optional ``population`` field and the aggregated source fields (NaN
    for empty cells).

    With ``resample=True`` non-empty cells reuse their representative
    source point instead (MIN/MAX grids only); ``source`` is then required.

    Raises:
        InvalidGridError: If the grid is not valid
        EmptyResultError: If the conversion would produce no point
        ValidationError: If resampling is requested without representatives
    """
    if not grid.valid:
        raise InvalidGridError("Grid has not been built")

    policy, empty_height, _, _ = resolve_empty_cell_height(grid, policy, custom_height)
    keep_empty = policy != EmptyCellPolicy.LEAVE_EMPTY

    occupied = (grid.counts > 0).reshape(-1)
    selected = np.ones_like(occupied) if keep_empty else occupied
    n_points = int(np.count_nonzero(selected))
    if n_points == 0:
        raise EmptyResultError("Empty grid: no point to export")

    h, v = grid.axes
    rows, cols = np.divmod(np.flatnonzero(selected), grid.width)
    is_filled = occupied[selected]
    heights = grid.heights.reshape(-1)[selected]

    xyz = np.empty((n_points, 3), dtype=np.float64)
    xyz[:, h] = grid.bbox.min_corner[h] + cols * grid.step
    xyz[:, v] = grid.bbox.min_corner[v] + rows * grid.step
    xyz[:, grid.projection_axis] = np.where(is_filled, heights, empty_height)

    if resample:
        if source is None:
            raise ValidationError("Resampling requires the source point cloud")
        if grid.height_mode == ProjectionType.AVERAGE:
            raise ValidationError("Cannot resample the source cloud of an AVERAGE grid")
        representatives = grid.point_indices.reshape(-1)[selected]
        reuse = is_filled & (representatives != NO_POINT)
        xyz[reuse] = source.xyz[representatives[reuse]]

    scalar_fields = {HEIGHT_FIELD_NAME: xyz[:, grid.projection_axis].copy()}
    if generate_count_field:
        counts = grid.counts.reshape(-1)[selected].astype(np.float64)
        scalar_fields[COUNT_FIELD_NAME] = np.where(is_filled, counts, np.nan)

    if include_fields:
        for index in sorted(grid.fields):
            name = grid.field_names[index]
            if name in scalar_fields:
                name = f"{name}.old"
            values = grid.fields[index].reshape(-1)[selected]
            scalar_fields[name] = np.where(is_filled, values, np.nan)

    crs = source.crs if source is not None else None
    return PointCloud(xyz=xyz, scalar_fields=scalar_fields, crs=crs)
