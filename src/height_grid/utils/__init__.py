"""Utility modules."""

from .visualization import plot_grid, plot_contours

__all__ = ["plot_grid", "plot_contours"]
