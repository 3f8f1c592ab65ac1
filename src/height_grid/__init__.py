"""
Height Grid

A Python library for rasterizing point clouds into height grids,
filling empty cells and extracting contour lines.
"""

__version__ = "0.1.0"

from .core.grid import RasterGrid, ProjectionType, EmptyCellPolicy, BoundingBox
from .core.builder import GridBuilder
from .core.interpolation import EmptyCellInterpolator
from .core.contours import ContourExtractor, ContourLine
from .core.session import RasterSession
from .io.point_cloud import PointCloudLoader, PointCloud

__all__ = [
    "RasterGrid",
    "ProjectionType",
    "EmptyCellPolicy",
    "BoundingBox",
    "GridBuilder",
    "EmptyCellInterpolator",
    "ContourExtractor",
    "ContourLine",
    "RasterSession",
    "PointCloudLoader",
    "PointCloud",
]
