"""I/O modules for loading and saving data."""

from .point_cloud import PointCloudLoader, PointCloud, save_point_cloud_xyz
from .resample import grid_to_point_cloud, grid_height_matrix
from .exporters import export_grid_summary_json, export_contours_geojson

__all__ = [
    "PointCloudLoader",
    "PointCloud",
    "save_point_cloud_xyz",
    "grid_to_point_cloud",
    "grid_height_matrix",
    "export_grid_summary_json",
    "export_contours_geojson",
]
