"""
Command Line Interface for Height Grid

Usage:
    height-grid info <input>
    height-grid rasterize <input> --step <size> [-o cloud.xyz]
    height-grid contours <input> --step <size> [-o lines.geojson]
    height-grid generate-sample --output <file>
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click

from .core.config import AXIS_NAMES, ContourConfig, RasterizeConfig
from .core.grid import EmptyCellPolicy, ProjectionType
from .core.session import RasterSession
from .core.validation import ValidationError, validate_output_path
from .io.point_cloud import PointCloudLoader, generate_sample_terrain, save_point_cloud_xyz

PROJECTION_CHOICES = [p.value for p in ProjectionType]
FIELD_PROJECTION_CHOICES = ["skip"] + PROJECTION_CHOICES
FILL_CHOICES = [p.value for p in EmptyCellPolicy]


@contextmanager
def progress_bar(label: str):
    """Yield a progress callback that drives a click progress bar."""
    with click.progressbar(length=100, label=label, file=sys.stderr) as bar:
        def callback(done: int, total: int) -> bool:
            target = int(100 * done / total) if total else 100
            if target > bar.pos:
                bar.update(target - bar.pos)
            return True

        yield callback


def confirm_grid_size(assume_yes: bool):
    """Size confirmation hook for unusual grids (1 cell or very large)."""
    def confirm(cell_count: int) -> bool:
        if assume_yes:
            return True
        return click.confirm(
            f"The grid will have {cell_count:,} cells. Continue?",
            default=False,
            err=True,
        )
    return confirm


def load_cloud(input_file: str):
    click.echo(f"Loading point cloud: {input_file}")
    try:
        pc = PointCloudLoader.load(input_file)
    except Exception as e:
        click.echo(f"Error loading file: {e}", err=True)
        sys.exit(1)
    click.echo(f"  Loaded {pc.num_points:,} points")
    return pc


def build_session(
    input_file: str,
    step: float,
    axis: str,
    proj: str,
    sf_proj: str = "skip",
    fill: str = EmptyCellPolicy.LEAVE_EMPTY.value,
    custom_height: float = 0.0,
    assume_yes: bool = False,
) -> RasterSession:
    """Load a cloud and build its grid, exiting on any error."""
    pc = load_cloud(input_file)

    try:
        config = RasterizeConfig(
            step=step,
            projection_axis=AXIS_NAMES[axis],
            height_mode=ProjectionType(proj),
            field_mode=None if sf_proj == "skip" else ProjectionType(sf_proj),
            empty_policy=EmptyCellPolicy(fill),
            custom_height=custom_height,
        )
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    session = RasterSession(pc, config)
    click.echo(f"Generating grid (step: {step})...")
    try:
        with progress_bar("  Rasterizing") as callback:
            grid = session.update_grid(
                progress=callback, confirm_size=confirm_grid_size(assume_yes)
            )
    except Exception as e:
        click.echo(f"Error generating grid: {e}", err=True)
        sys.exit(1)

    click.echo(f"  Grid size: {grid.width} x {grid.height}")
    click.echo(f"  Non-empty cells: {grid.non_empty_cells:,} / {grid.size:,}")
    click.echo(f"  Heights: {grid.min_height:.2f} to {grid.max_height:.2f}")
    return session


def grid_options(f):
    """Options shared by the commands that build a grid."""
    options = [
        click.option('--step', '-s', required=True, type=float, help='Grid cell size'),
        click.option('--axis', type=click.Choice(list(AXIS_NAMES)), default='z',
                     help='Projection (height) axis (default: z)'),
        click.option('--proj', type=click.Choice(PROJECTION_CHOICES), default='max',
                     help='Cell height aggregation (default: max)'),
        click.option('--fill', type=click.Choice(FILL_CHOICES), default='empty',
                     help='Empty cell policy (default: empty)'),
        click.option('--custom-height', default=0.0, type=float,
                     help='Height for empty cells with --fill custom/interpolate'),
        click.option('--yes', '-y', 'assume_yes', is_flag=True,
                     help='Do not ask for confirmation on unusual grid sizes'),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def main(verbose: bool):
    """Height Grid Tool

    Rasterize point clouds into height grids and extract
    contour lines.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
def info(input_file: str):
    """Display information about a point cloud file."""
    click.echo(f"Loading: {input_file}")

    try:
        pc = PointCloudLoader.load(input_file)
    except Exception as e:
        click.echo(f"Error loading file: {e}", err=True)
        sys.exit(1)

    bounds_min, bounds_max = pc.bounds

    click.echo("\n" + "=" * 50)
    click.echo("POINT CLOUD INFO")
    click.echo("=" * 50)
    click.echo(f"File:           {input_file}")
    click.echo(f"Points:         {pc.num_points:,}")
    if pc.crs:
        click.echo(f"CRS:            {pc.crs}")
    click.echo("")
    click.echo("Bounds:")
    for name, axis in AXIS_NAMES.items():
        click.echo(
            f"  {name.upper()}:            "
            f"{bounds_min[axis]:.2f} to {bounds_max[axis]:.2f}"
        )

    if pc.has_scalar_fields:
        click.echo("\nScalar fields:")
        for name, values in pc.scalar_fields.items():
            click.echo(f"  {name}: {values.min():.2f} to {values.max():.2f}")

    click.echo("=" * 50)


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
@grid_options
@click.option('--sf-proj', type=click.Choice(FIELD_PROJECTION_CHOICES), default='skip',
              help='Scalar field aggregation (default: skip)')
@click.option('--count-sf', is_flag=True, help='Add a per-cell population field')
@click.option('--resample', is_flag=True,
              help='Use the representative source points (min/max only)')
@click.option('--output', '-o', type=click.Path(), help='Output XYZ file for the grid cloud')
@click.option('--summary', type=click.Path(), help='Output JSON file for grid statistics')
@click.option('--plot', is_flag=True, help='Show the grid heights')
def rasterize(
    input_file: str,
    step: float,
    axis: str,
    proj: str,
    fill: str,
    custom_height: float,
    assume_yes: bool,
    sf_proj: str,
    count_sf: bool,
    resample: bool,
    output: Optional[str],
    summary: Optional[str],
    plot: bool,
):
    """Rasterize a point cloud into a height grid.

    Example:
        height-grid rasterize terrain.xyz -s 1.0 --proj avg -o grid.xyz
    """
    session = build_session(
        input_file, step, axis, proj, sf_proj, fill, custom_height, assume_yes
    )

    if output:
        try:
            output_path = validate_output_path(output, "output cloud")
            pc = session.to_point_cloud(generate_count_field=count_sf, resample=resample)
            save_point_cloud_xyz(pc, output_path)
            click.echo(f"Grid cloud ({pc.num_points:,} points) saved to: {output}")
        except Exception as e:
            click.echo(f"Error exporting grid cloud: {e}", err=True)
            sys.exit(1)

    if summary:
        try:
            from .io.exporters import export_grid_summary_json
            summary_path = validate_output_path(summary, "summary JSON file")
            export_grid_summary_json(
                session.grid, summary_path,
                extra={
                    "source": str(input_file),
                    "projection": proj,
                    "fill": fill,
                    "crs": session.cloud.crs,
                },
            )
            click.echo(f"Summary saved to: {summary}")
        except Exception as e:
            click.echo(f"Error saving summary: {e}", err=True)
            sys.exit(1)

    if plot:
        try:
            from .utils.visualization import plot_grid
            import matplotlib.pyplot as plt

            plot_grid(session.grid, session.config.empty_policy, custom_height)
            plt.show()
        except ImportError:
            click.echo("Warning: matplotlib required for plotting", err=True)


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
@grid_options
@click.option('--start', type=float, help='First contour level (default: lowest height)')
@click.option('--level-step', type=float, help='Contour spacing (default: range / 10)')
@click.option('--min-vertices', default=3, help='Drop lines with fewer vertices (default: 3)')
@click.option('--ignore-borders', is_flag=True,
              help='Split lines running through the outermost cells')
@click.option('--output', '-o', type=click.Path(), help='Output GeoJSON file')
@click.option('--plot', is_flag=True, help='Show the contour lines over the grid')
def contours(
    input_file: str,
    step: float,
    axis: str,
    proj: str,
    fill: str,
    custom_height: float,
    assume_yes: bool,
    start: Optional[float],
    level_step: Optional[float],
    min_vertices: int,
    ignore_borders: bool,
    output: Optional[str],
    plot: bool,
):
    """Extract contour lines from a rasterized point cloud.

    Example:
        height-grid contours terrain.xyz -s 1.0 --level-step 2.5 -o lines.geojson
    """
    session = build_session(
        input_file, step, axis, proj, fill=fill,
        custom_height=custom_height, assume_yes=assume_yes,
    )

    defaults = session.default_contour_config()
    try:
        config = ContourConfig(
            start_level=defaults.start_level if start is None else start,
            level_step=defaults.level_step if level_step is None else level_step,
            min_vertex_count=min_vertices,
            ignore_border=ignore_borders,
        )
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Tracing contours (start: {config.start_level:g}, step: {config.level_step:g})..."
    )
    try:
        with progress_bar("  Tracing") as callback:
            lines = session.generate_contours(config, progress=callback)
    except Exception as e:
        click.echo(f"Error generating contours: {e}", err=True)
        sys.exit(1)

    closed = sum(1 for line in lines if line.closed)
    click.echo(f"  {len(lines)} contour lines ({closed} closed)")

    if output:
        try:
            from .io.exporters import export_contours_geojson
            output_path = validate_output_path(output, "GeoJSON output")
            export_contours_geojson(
                lines, output_path, crs=session.cloud.crs, plane_axes=session.grid.axes
            )
            click.echo(f"Contour lines exported to: {output}")
        except Exception as e:
            click.echo(f"Error exporting GeoJSON: {e}", err=True)
            sys.exit(1)

    if plot:
        try:
            from .utils.visualization import plot_contours, plot_grid
            import matplotlib.pyplot as plt

            fig = plot_grid(session.grid, session.config.empty_policy, custom_height)
            plot_contours(lines, plane_axes=session.grid.axes, ax=fig.axes[0])
            plt.show()
        except ImportError:
            click.echo("Warning: matplotlib required for plotting", err=True)


@main.command()
@click.option('--output', '-o', required=True, type=click.Path(),
              help='Output file path (.las or .xyz)')
@click.option('--size', default="100,100", help='Terrain size as "width,height" (default: 100,100)')
@click.option('--resolution', '-r', default=1.0, help='Point spacing (default: 1.0)')
@click.option('--base-elevation', default=100.0, help='Base elevation (default: 100)')
@click.option('--hill-height', default=10.0, help='Maximum hill height (default: 10)')
@click.option('--seed', default=42, help='Random seed (default: 42)')
def generate_sample(
    output: str,
    size: str,
    resolution: float,
    base_elevation: float,
    hill_height: float,
    seed: int,
):
    """Generate a sample terrain point cloud for testing.

    Example:
        height-grid generate-sample -o sample.xyz --size 200,200
    """
    try:
        width, height = [float(x) for x in size.split(',')]
    except ValueError:
        click.echo("Error: Size must be 'width,height'", err=True)
        sys.exit(1)

    click.echo("Generating sample terrain...")
    click.echo(f"  Size: {width} x {height}")
    click.echo(f"  Resolution: {resolution}")

    pc = generate_sample_terrain(
        size=(width, height),
        resolution=resolution,
        base_elevation=base_elevation,
        noise_scale=2.0,
        hill_height=hill_height,
        seed=seed,
    )
    click.echo(f"  Generated {pc.num_points:,} points")

    output_path = Path(output)
    if output_path.suffix.lower() in ['.las', '.laz']:
        try:
            import laspy
            header = laspy.LasHeader(point_format=0, version="1.2")
            las = laspy.LasData(header)
            las.x = pc.x
            las.y = pc.y
            las.z = pc.z
            las.write(output)
        except ImportError:
            click.echo("Error: laspy required for LAS output. Use .xyz instead.", err=True)
            sys.exit(1)
    else:
        save_point_cloud_xyz(pc, output_path)
    click.echo(f"Saved to: {output}")


if __name__ == '__main__':
    main()
