"""
Basic Rasterization Example

This example demonstrates:
1. Generating point cloud data
2. Building a height grid
3. Interpolating empty cells
4. Extracting contour lines
5. Exporting the grid and the contours

Run from the project root:
    python examples/basic_rasterize.py
"""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import logging

import numpy as np

from height_grid.io.point_cloud import generate_sample_terrain, save_point_cloud_xyz
from height_grid.io.exporters import export_contours_geojson, export_grid_summary_json
from height_grid.core.config import ContourConfig, RasterizeConfig
from height_grid.core.grid import EmptyCellPolicy, ProjectionType
from height_grid.core.session import RasterSession


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("HEIGHT GRID - EXAMPLE")
    print("=" * 60)

    # =========================================================================
    # Step 1: Generate point cloud
    # =========================================================================
    print("\n[1] Generating sample terrain...")

    point_cloud = generate_sample_terrain(
        size=(200.0, 150.0),
        resolution=1.0,
        base_elevation=100.0,
        noise_scale=1.5,
        hill_height=8.0,
        seed=42,
    )

    # punch a hole in the data so some cells stay empty
    x, y = point_cloud.x, point_cloud.y
    hole = (x - 100) ** 2 + (y - 75) ** 2 < 15 ** 2
    point_cloud = point_cloud.select(~hole)

    bounds_min, bounds_max = point_cloud.bounds
    print(f"   Points: {point_cloud.num_points:,}")
    print(f"   Z range: {bounds_min[2]:.1f} to {bounds_max[2]:.1f}")

    # =========================================================================
    # Step 2: Build the grid (empty cells interpolated)
    # =========================================================================
    print("\n[2] Building height grid...")

    config = RasterizeConfig(
        step=2.0,
        height_mode=ProjectionType.AVERAGE,
        field_mode=ProjectionType.AVERAGE,
        empty_policy=EmptyCellPolicy.INTERPOLATE,
    )
    session = RasterSession(point_cloud, config)
    grid = session.update_grid()

    stats = grid.statistics()
    print(f"   Grid size: {grid.width} x {grid.height}")
    print(f"   Non-empty cells: {stats['non_empty_cells']:,} / {stats['total_cells']:,}")
    print(f"   Height range: {stats['min_height']:.1f} to {stats['max_height']:.1f}")

    # =========================================================================
    # Step 3: Contour lines
    # =========================================================================
    print("\n[3] Tracing contour lines...")

    contour_config = ContourConfig(
        start_level=np.floor(grid.min_height),
        level_step=2.0,
        min_vertex_count=5,
    )
    lines = session.generate_contours(contour_config)
    closed = sum(1 for line in lines if line.closed)
    print(f"   {len(lines)} lines ({closed} closed)")

    # =========================================================================
    # Step 4: Export
    # =========================================================================
    print("\n[4] Exporting...")

    output_dir = Path("output")
    output_dir.mkdir(exist_ok=True)

    save_point_cloud_xyz(session.to_point_cloud(generate_count_field=True), output_dir / "grid.xyz")
    export_grid_summary_json(grid, str(output_dir / "grid_summary.json"))
    export_contours_geojson(lines, str(output_dir / "contours.geojson"), plane_axes=grid.axes)
    print(f"   Files written to {output_dir}/")

    # =========================================================================
    # Step 5: Visualize (optional)
    # =========================================================================
    try:
        import matplotlib.pyplot as plt
        from height_grid.utils.visualization import plot_contours, plot_grid

        fig = plot_grid(grid, config.empty_policy)
        plot_contours(lines, plane_axes=grid.axes, ax=fig.axes[0])
        plt.show()
    except ImportError:
        print("\n(matplotlib not installed, skipping plot)")


if __name__ == "__main__":
    main()
