"""
CLI command tests using Click's test runner.
"""

import pytest
import json

from height_grid.cli import main


class TestCLIInfo:
    """Test 'info' command."""

    def test_info_xyz(self, cli_runner, sample_xyz_file):
        """Test info command on a sample XYZ file."""
        result = cli_runner.invoke(main, ['info', str(sample_xyz_file)])

        assert result.exit_code == 0
        assert 'POINT CLOUD INFO' in result.output
        assert 'Points:         400' in result.output
        assert 'field_3' in result.output

    def test_info_missing_file(self, cli_runner):
        """Test info command with missing file."""
        result = cli_runner.invoke(main, ['info', 'nonexistent.xyz'])

        assert result.exit_code != 0


class TestCLIRasterize:
    """Test 'rasterize' command."""

    def test_rasterize_with_outputs(self, cli_runner, sample_xyz_file, tmp_output_dir):
        output_cloud = tmp_output_dir / "grid.xyz"
        summary = tmp_output_dir / "summary.json"

        result = cli_runner.invoke(main, [
            'rasterize', str(sample_xyz_file),
            '--step', '2.0',
            '--proj', 'avg',
            '--sf-proj', 'max',
            '--count-sf',
            '--output', str(output_cloud),
            '--summary', str(summary),
        ])

        assert result.exit_code == 0, result.output
        assert 'Grid size: 10 x 10' in result.output
        assert output_cloud.exists()

        header = output_cloud.read_text().splitlines()[0]
        assert header == "# x y z height population field_3"

        with open(summary) as f:
            data = json.load(f)
        assert data['width'] == 10
        assert data['projection'] == 'avg'

    def test_rasterize_invalid_step(self, cli_runner, sample_xyz_file):
        result = cli_runner.invoke(main, ['rasterize', str(sample_xyz_file), '--step', '0'])

        assert result.exit_code == 1
        assert 'must be positive' in result.output

    def test_rasterize_resample_average_fails(self, cli_runner, sample_xyz_file, tmp_output_dir):
        result = cli_runner.invoke(main, [
            'rasterize', str(sample_xyz_file),
            '--step', '2.0',
            '--proj', 'avg',
            '--resample',
            '-o', str(tmp_output_dir / "grid.xyz"),
        ])

        assert result.exit_code == 1
        assert 'AVERAGE' in result.output

    def test_single_cell_grid_needs_confirmation(self, cli_runner, sample_xyz_file):
        """Declining the size prompt aborts the build."""
        result = cli_runner.invoke(
            main,
            ['rasterize', str(sample_xyz_file), '--step', '50'],
            input='n\n',
        )
        assert result.exit_code == 1
        assert 'Continue?' in result.output

    def test_single_cell_grid_with_yes(self, cli_runner, sample_xyz_file):
        result = cli_runner.invoke(
            main, ['rasterize', str(sample_xyz_file), '--step', '50', '--yes']
        )
        assert result.exit_code == 0, result.output
        assert 'Grid size: 1 x 1' in result.output


class TestCLIContours:
    """Test 'contours' command."""

    def test_contours_geojson(self, cli_runner, sample_xyz_file, tmp_output_dir):
        output = tmp_output_dir / "lines.geojson"

        result = cli_runner.invoke(main, [
            'contours', str(sample_xyz_file),
            '--step', '1.0',
            '--level-step', '2.5',
            '--output', str(output),
        ])

        assert result.exit_code == 0, result.output
        assert 'contour lines' in result.output

        with open(output) as f:
            data = json.load(f)
        assert data['type'] == 'FeatureCollection'
        assert len(data['features']) > 0

    def test_contours_keep_source_crs(self, cli_runner, sample_xyz_file, tmp_output_dir, monkeypatch):
        """The CRS read from the input ends up in the GeoJSON."""
        from height_grid.io.point_cloud import PointCloudLoader

        cloud = PointCloudLoader.load(sample_xyz_file)
        cloud.crs = "EPSG:2056"
        monkeypatch.setattr(PointCloudLoader, "load", classmethod(lambda cls, path, **kwargs: cloud))
        output = tmp_output_dir / "lines.geojson"

        result = cli_runner.invoke(main, [
            'contours', str(sample_xyz_file),
            '--step', '1.0',
            '--level-step', '2.5',
            '--output', str(output),
        ])

        assert result.exit_code == 0, result.output
        with open(output) as f:
            data = json.load(f)
        assert data['crs']['properties']['name'] == "EPSG:2056"

    def test_contours_start_above_range(self, cli_runner, sample_xyz_file):
        result = cli_runner.invoke(main, [
            'contours', str(sample_xyz_file),
            '--step', '1.0',
            '--start', '1000',
        ])

        assert result.exit_code == 1
        assert 'above maximum height' in result.output

    def test_contours_bad_min_vertices(self, cli_runner, sample_xyz_file):
        result = cli_runner.invoke(main, [
            'contours', str(sample_xyz_file),
            '--step', '1.0',
            '--min-vertices', '1',
        ])

        assert result.exit_code == 1
        assert 'at least 2' in result.output


class TestCLIGenerateSample:
    """Test 'generate-sample' command."""

    def test_generate_xyz(self, cli_runner, tmp_output_dir):
        """Test generating sample XYZ file."""
        output = tmp_output_dir / "sample.xyz"

        result = cli_runner.invoke(main, [
            'generate-sample',
            '--output', str(output),
            '--size', '20,20',
        ])

        assert result.exit_code == 0
        assert output.exists()
        assert 'Generated 400 points' in result.output

    def test_generate_bad_size(self, cli_runner, tmp_output_dir):
        result = cli_runner.invoke(main, [
            'generate-sample',
            '--output', str(tmp_output_dir / "sample.xyz"),
            '--size', '20',
        ])

        assert result.exit_code == 1

    @pytest.mark.requires_laspy
    def test_generate_las(self, cli_runner, tmp_output_dir):
        output = tmp_output_dir / "sample.las"

        result = cli_runner.invoke(main, [
            'generate-sample',
            '--output', str(output),
            '--size', '10,10',
        ])

        assert result.exit_code == 0
        assert output.exists()


class TestCLIHelp:
    """Test help output."""

    def test_main_help(self, cli_runner):
        result = cli_runner.invoke(main, ['--help'])

        assert result.exit_code == 0
        for command in ('info', 'rasterize', 'contours', 'generate-sample'):
            assert command in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output
