"""Core data structures and algorithms."""

from .grid import RasterGrid, Cell, ProjectionType, EmptyCellPolicy, BoundingBox
from .config import RasterizeConfig, ContourConfig
from .builder import GridBuilder, build_grid
from .interpolation import EmptyCellInterpolator, fill_by_interpolation
from .contours import ContourExtractor, ContourLine, trace_contours
from .session import RasterSession

__all__ = [
    "RasterGrid",
    "Cell",
    "ProjectionType",
    "EmptyCellPolicy",
    "BoundingBox",
    "RasterizeConfig",
    "ContourConfig",
    "GridBuilder",
    "build_grid",
    "EmptyCellInterpolator",
    "fill_by_interpolation",
    "ContourExtractor",
    "ContourLine",
    "trace_contours",
    "RasterSession",
]
