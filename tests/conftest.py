"""
Shared pytest fixtures and configuration for height_grid tests.
"""

import numpy as np
import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_laspy: requires laspy to be installed"
    )
    config.addinivalue_line(
        "markers", "requires_matplotlib: requires matplotlib to be installed"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests based on missing dependencies."""
    try:
        import laspy
        laspy_available = True
    except ImportError:
        laspy_available = False

    try:
        import matplotlib
        matplotlib_available = True
    except ImportError:
        matplotlib_available = False

    for item in items:
        if "requires_laspy" in item.keywords and not laspy_available:
            item.add_marker(pytest.mark.skip(reason="laspy not installed"))
        if "requires_matplotlib" in item.keywords and not matplotlib_available:
            item.add_marker(pytest.mark.skip(reason="matplotlib not installed"))


@pytest.fixture
def sample_point_cloud():
    """Generate a small synthetic point cloud for fast tests."""
    from height_grid.io.point_cloud import generate_sample_terrain

    return generate_sample_terrain(
        size=(20.0, 20.0),
        resolution=1.0,
        base_elevation=100.0,
        seed=42,
    )


@pytest.fixture
def make_cloud():
    """Factory building a PointCloud from a list of (x, y, z) tuples."""
    from height_grid.io.point_cloud import PointCloud

    def _make(points, **fields):
        return PointCloud(
            xyz=np.asarray(points, dtype=np.float64).reshape(-1, 3),
            scalar_fields={name: np.asarray(v, dtype=np.float64) for name, v in fields.items()},
        )

    return _make


@pytest.fixture
def make_grid():
    """
    Factory building a valid grid directly from a (rows, cols) height array.

    Cells where ``counts`` is 0 (or the height is NaN) are empty.
    """
    from height_grid.core.grid import BoundingBox, RasterGrid

    def _make(heights, counts=None, step=1.0, origin=(0.0, 0.0)):
        heights = np.asarray(heights, dtype=np.float64)
        rows, cols = heights.shape
        if counts is None:
            counts = np.where(np.isnan(heights), 0, 1)
        x0, y0 = origin
        bbox = BoundingBox(
            [x0, y0, np.nanmin(heights)],
            [x0 + cols * step, y0 + rows * step, np.nanmax(heights)],
        )
        grid = RasterGrid.allocate(cols, rows, step, bbox, projection_axis=2)
        grid.counts[:] = np.asarray(counts, dtype=np.uint32)
        grid.heights[:] = np.where(grid.counts > 0, np.nan_to_num(heights), 0.0)
        grid.update_statistics()
        grid.valid = True
        return grid

    return _make


@pytest.fixture
def sample_xyz_file(tmp_path, sample_point_cloud):
    """Sample terrain saved as an XYZ file (with an intensity column)."""
    from height_grid.io.point_cloud import save_point_cloud_xyz

    path = tmp_path / "sample.xyz"
    save_point_cloud_xyz(sample_point_cloud, path)
    return path


@pytest.fixture
def tmp_output_dir(tmp_path):
    """Temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
