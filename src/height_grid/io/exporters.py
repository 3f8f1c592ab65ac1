"""
Export utilities for grids and contour lines.

Provides a JSON grid summary and GeoJSON contour lines.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from ..core.contours import ContourLine
    from ..core.grid import RasterGrid


def export_grid_summary_json(
    grid: 'RasterGrid',
    filepath: str,
    extra: Optional[Dict[str, Any]] = None,
    indent: int = 2,
) -> None:
    """
    Export grid statistics to JSON.

    Args:
        grid: Built RasterGrid
        filepath: Output JSON file path
        extra: Additional entries merged into the summary
        indent: JSON indentation level (default: 2)
    """
    data = grid.statistics()
    if extra:
        data.update(extra)

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent)


def contours_to_features(
    lines: Sequence['ContourLine'],
    plane_axes: Sequence[int] = (0, 1),
) -> List[Dict[str, Any]]:
    """GeoJSON features (LineString, or Polygon for closed lines)."""
    from shapely.geometry import Polygon

    features: List[Dict[str, Any]] = []
    for number, line in enumerate(lines, start=1):
        geometry = line.to_shapely(tuple(plane_axes))
        if line.closed and geometry.geom_type == "LinearRing":
            geometry = Polygon(geometry)

        features.append({
            "type": "Feature",
            "geometry": geometry.__geo_interface__,
            "properties": {
                "name": f"Contour line z={line.level:g} (#{number})",
                "level": line.level,
                "closed": line.closed,
                "vertex_count": line.vertex_count,
            }
        })
    return features


def export_contours_geojson(
    lines: Sequence['ContourLine'],
    filepath: str,
    plane_axes: Sequence[int] = (0, 1),
    crs: Optional[str] = None,
) -> None:
    """
    Export contour lines to GeoJSON.

    Args:
        lines: Contour lines from ContourExtractor
        filepath: Output GeoJSON file path
        plane_axes: Coordinate axes used as GeoJSON x/y
        crs: Optional CRS string (added as foreign member)
    """
    geojson: Dict[str, Any] = {
        "type": "FeatureCollection",
        "features": contours_to_features(lines, plane_axes),
    }

    if crs:
        geojson["crs"] = {
            "type": "name",
            "properties": {"name": crs}
        }

    with open(Path(filepath), 'w', encoding='utf-8') as f:
        json.dump(geojson, f, indent=2)
