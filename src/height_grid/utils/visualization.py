"""
Visualization Utilities

Plotting functions for height grids and contour lines.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, TYPE_CHECKING
import numpy as np

try:
    import matplotlib.pyplot as plt
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from ..core.grid import EmptyCellPolicy

if TYPE_CHECKING:
    from ..core.contours import ContourLine
    from ..core.grid import RasterGrid


def require_matplotlib():
    if not HAS_MATPLOTLIB:
        raise ImportError("matplotlib is required. Install with: pip install matplotlib")


def grid_extent(grid: 'RasterGrid') -> Tuple[float, float, float, float]:
    """imshow extent (left, right, bottom, top) of a grid in plane coordinates."""
    x0, y0 = grid.origin
    return (x0, x0 + grid.width * grid.step, y0, y0 + grid.height * grid.step)


def plot_grid(
    grid: 'RasterGrid',
    policy: EmptyCellPolicy = EmptyCellPolicy.LEAVE_EMPTY,
    custom_height: float = 0.0,
    ax: Optional[plt.Axes] = None,
    title: str = "Height Grid",
    cmap: str = "terrain",
    figsize: Tuple[int, int] = (10, 8),
) -> plt.Figure:
    """
    Plot grid heights as a 2D heatmap.

    Args:
        grid: Built RasterGrid
        policy: Empty-cell policy (LEAVE_EMPTY cells are left blank)
        custom_height: Height for FILL_CUSTOM / INTERPOLATE
        ax: Optional matplotlib axes (creates new figure if None)
        title: Plot title
        cmap: Colormap name
        figsize: Figure size if creating new figure

    Returns:
        matplotlib Figure
    """
    require_matplotlib()
    from ..io.resample import grid_height_matrix

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    data = np.ma.masked_invalid(grid_height_matrix(grid, policy, custom_height))

    im = ax.imshow(
        data,
        extent=grid_extent(grid),
        origin='lower',
        cmap=cmap,
        aspect='equal',
    )
    plt.colorbar(im, ax=ax, label='Height')

    h, v = grid.axes
    ax.set_xlabel("XYZ"[h])
    ax.set_ylabel("XYZ"[v])
    ax.set_title(title)

    return fig


def plot_contours(
    lines: Sequence['ContourLine'],
    plane_axes: Tuple[int, int] = (0, 1),
    ax: Optional[plt.Axes] = None,
    title: str = "Contour Lines",
    cmap: str = "viridis",
    figsize: Tuple[int, int] = (10, 8),
) -> plt.Figure:
    """
    Plot contour lines, colored by level.

    Args:
        lines: Contour lines to draw
        plane_axes: Coordinate axes used for the plot's x/y
        ax: Optional matplotlib axes (draws over a grid plot if given)
        title: Plot title
        cmap: Colormap name
        figsize: Figure size if creating new figure

    Returns:
        matplotlib Figure
    """
    require_matplotlib()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    if lines:
        levels = [line.level for line in lines]
        low, high = min(levels), max(levels)
        colormap = plt.get_cmap(cmap)
        h, v = plane_axes

        for line in lines:
            ratio = (line.level - low) / (high - low) if high > low else 0.5
            points = line.vertices
            if line.closed:
                points = np.vstack([points, points[:1]])
            ax.plot(points[:, h], points[:, v], color=colormap(ratio), linewidth=1)

    ax.set_aspect('equal')
    ax.set_title(title)

    return fig
