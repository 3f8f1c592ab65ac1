"""
Point Cloud Loading Module

Handles loading point clouds from various formats (LAS, LAZ, XYZ, PLY)
and provides a unified PointCloud data structure with named per-point
scalar fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import struct
from typing import Dict, List, Optional, Tuple
import numpy as np

try:
    import laspy
    HAS_LASPY = True
except ImportError:
    HAS_LASPY = False

# LAS dimensions exposed as scalar fields when present
LAS_SCALAR_DIMENSIONS = (
    "intensity",
    "classification",
    "return_number",
    "number_of_returns",
    "scan_angle_rank",
    "user_data",
    "point_source_id",
    "gps_time",
)

# GeoKeyDirectory keys holding an EPSG code
PROJECTED_CS_GEOKEY = 3072
GEOGRAPHIC_CS_GEOKEY = 2048


def _vlr_bytes(vlr) -> bytes:
    # laspy parses known records into typed VLRs without a raw record_data
    if hasattr(vlr, 'record_data_bytes'):
        return bytes(vlr.record_data_bytes())
    return bytes(vlr.record_data)


def _vlr_wkt(vlr) -> Optional[str]:
    try:
        wkt = _vlr_bytes(vlr).decode('utf-8').rstrip('\x00')
    except UnicodeDecodeError:
        return None
    return wkt if wkt.strip() else None


def _geokey_epsg(data: bytes) -> Optional[str]:
    """EPSG code from a GeoKeyDirectory record, if it holds one inline."""
    if len(data) < 8:
        return None
    num_keys = struct.unpack('<H', data[6:8])[0]
    offset = 8
    for _ in range(num_keys):
        if offset + 8 > len(data):
            break
        key_id, tiff_tag, _count, value = struct.unpack('<HHHH', data[offset:offset + 8])
        # tiff_tag 0 means the value is stored in the entry itself
        if key_id in (PROJECTED_CS_GEOKEY, GEOGRAPHIC_CS_GEOKEY) and tiff_tag == 0:
            return f"EPSG:{value}"
        offset += 8
    return None


def extract_crs_from_las(las) -> Optional[str]:
    """
    Read the coordinate reference system from LAS VLRs.

    WKT records (LASF_WKT/1 and the legacy LASF_Projection/2112) win over
    the GeoTIFF key directory (LASF_Projection/34735).

    Returns:
        WKT string, "EPSG:<code>" or None
    """
    vlrs = getattr(las, 'vlrs', None)
    if not vlrs:
        return None

    for vlr in vlrs:
        if (vlr.user_id, vlr.record_id) in (("LASF_WKT", 1), ("LASF_Projection", 2112)):
            wkt = _vlr_wkt(vlr)
            if wkt:
                return wkt

    for vlr in vlrs:
        if vlr.user_id == "LASF_Projection" and vlr.record_id == 34735:
            epsg = _geokey_epsg(_vlr_bytes(vlr))
            if epsg:
                return epsg

    return None


@dataclass
class PointCloud:
    """
    Unified point cloud data structure.

    Attributes:
        xyz: Nx3 array of point coordinates
        scalar_fields: Named per-point values (N floats each, NaN = no value).
            Field index i refers to the i-th entry in insertion order.
        crs: Coordinate reference system (EPSG code or WKT)
    """
    xyz: np.ndarray
    scalar_fields: Dict[str, np.ndarray] = field(default_factory=dict)
    crs: Optional[str] = None
    _bounds: Optional[Tuple[np.ndarray, np.ndarray]] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate data shapes."""
        self.xyz = np.asarray(self.xyz, dtype=np.float64)
        if self.xyz.ndim != 2 or self.xyz.shape[1] != 3:
            raise ValueError(f"xyz must be Nx3 array, got shape {self.xyz.shape}")

        n_points = len(self.xyz)
        for name, values in list(self.scalar_fields.items()):
            values = np.asarray(values, dtype=np.float64)
            if values.shape != (n_points,):
                raise ValueError(f"scalar field '{name}' length must match xyz")
            self.scalar_fields[name] = values

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Get (min_xyz, max_xyz) bounding box."""
        if self._bounds is None:
            if self.num_points == 0:
                raise ValueError("Empty point cloud has no bounds")
            self._bounds = (
                np.min(self.xyz, axis=0),
                np.max(self.xyz, axis=0)
            )
        return self._bounds

    @property
    def num_points(self) -> int:
        """Total number of points."""
        return len(self.xyz)

    @property
    def field_names(self) -> List[str]:
        return list(self.scalar_fields)

    @property
    def has_scalar_fields(self) -> bool:
        return bool(self.scalar_fields)

    def field_values(self, index: int) -> np.ndarray:
        """Values of the scalar field at ``index``."""
        return self.scalar_fields[self.field_names[index]]

    @property
    def x(self) -> np.ndarray:
        return self.xyz[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.xyz[:, 1]

    @property
    def z(self) -> np.ndarray:
        return self.xyz[:, 2]

    def filter_by_bounds(
        self,
        min_x: float = -np.inf,
        max_x: float = np.inf,
        min_y: float = -np.inf,
        max_y: float = np.inf,
        min_z: float = -np.inf,
        max_z: float = np.inf,
    ) -> PointCloud:
        """Filter points by spatial bounds."""
        mask = (
            (self.xyz[:, 0] >= min_x) & (self.xyz[:, 0] <= max_x) &
            (self.xyz[:, 1] >= min_y) & (self.xyz[:, 1] <= max_y) &
            (self.xyz[:, 2] >= min_z) & (self.xyz[:, 2] <= max_z)
        )
        return self.select(mask)

    def select(self, selection: np.ndarray) -> PointCloud:
        """New PointCloud from a boolean mask or an index array."""
        return PointCloud(
            xyz=self.xyz[selection].copy(),
            scalar_fields={
                name: values[selection].copy()
                for name, values in self.scalar_fields.items()
            },
            crs=self.crs,
        )

    def subsample(self, factor: int = 10) -> PointCloud:
        """Return every Nth point (for quick visualization/testing)."""
        return self.select(np.arange(len(self.xyz)) % factor == 0)


class PointCloudLoader:
    """
    Factory for loading point clouds from various file formats.

    Supported formats:
        - LAS/LAZ (requires laspy)
        - XYZ (plain text: x y z [field ...] per line)
        - PLY (ASCII point clouds)
    """

    @classmethod
    def load(cls, filepath: str | Path, **kwargs) -> PointCloud:
        """
        Load point cloud from file, auto-detecting format.

        Args:
            filepath: Path to point cloud file
            **kwargs: Format-specific options

        Returns:
            PointCloud instance
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        loaders = {
            '.las': cls._load_las,
            '.laz': cls._load_las,
            '.xyz': cls._load_xyz,
            '.txt': cls._load_xyz,
            '.ply': cls._load_ply,
        }

        if suffix not in loaders:
            raise ValueError(f"Unsupported format: {suffix}")

        return loaders[suffix](filepath, **kwargs)

    @classmethod
    def _load_las(cls, filepath: Path, **kwargs) -> PointCloud:
        """Load LAS/LAZ file using laspy."""
        if not HAS_LASPY:
            raise ImportError(
                "laspy is required to load LAS/LAZ files. "
                "Install with: pip install laspy lazrs"
            )

        with laspy.open(filepath) as reader:
            las = reader.read()

        xyz = np.column_stack([las.x, las.y, las.z]).astype(np.float64)

        available = set(las.point_format.dimension_names)
        scalar_fields = {
            name: np.asarray(las[name], dtype=np.float64)
            for name in LAS_SCALAR_DIMENSIONS
            if name in available
        }

        return PointCloud(xyz=xyz, scalar_fields=scalar_fields, crs=extract_crs_from_las(las))

    @classmethod
    def _load_xyz(
        cls,
        filepath: Path,
        delimiter: str = None,
        skip_header: int = 0,
        field_names: Optional[List[str]] = None,
        **kwargs
    ) -> PointCloud:
        """
        Load XYZ text file.

        Expected format: x y z [field ...] per line. Extra columns become
        scalar fields named ``field_names`` or ``field_3``, ``field_4``, ...
        """
        data = np.loadtxt(
            filepath,
            delimiter=delimiter,
            skiprows=skip_header,
            ndmin=2,
        )

        if data.shape[1] < 3:
            raise ValueError("XYZ file must have at least 3 columns")

        xyz = data[:, :3].astype(np.float64)

        extra = data.shape[1] - 3
        names = list(field_names or [])
        names += [f"field_{i + 3}" for i in range(len(names), extra)]
        scalar_fields = {names[i]: data[:, 3 + i] for i in range(extra)}

        return PointCloud(xyz=xyz, scalar_fields=scalar_fields)

    @classmethod
    def _load_ply(cls, filepath: Path, **kwargs) -> PointCloud:
        """Load PLY file (ASCII format only for now)."""
        with open(filepath, 'r') as f:
            line = f.readline().strip()
            if line != 'ply':
                raise ValueError("Not a valid PLY file")

            n_vertices = 0
            properties = []
            in_vertex_element = False
            in_header = True

            while in_header:
                line = f.readline()
                if not line:
                    raise ValueError("PLY header is not terminated by end_header")
                line = line.strip()
                if line.startswith('format') and 'ascii' not in line:
                    raise ValueError("Only ASCII PLY files are supported")
                if line.startswith('element'):
                    in_vertex_element = line.startswith('element vertex')
                    if in_vertex_element:
                        n_vertices = int(line.split()[-1])
                elif line.startswith('property') and in_vertex_element:
                    properties.append(line.split()[-1])
                elif line == 'end_header':
                    in_header = False

            for axis in ('x', 'y', 'z'):
                if axis not in properties:
                    raise ValueError(f"PLY vertex element has no '{axis}' property")

            data = np.loadtxt(f, max_rows=n_vertices, ndmin=2)

        xyz = np.column_stack([
            data[:, properties.index('x')],
            data[:, properties.index('y')],
            data[:, properties.index('z')],
        ]).astype(np.float64)

        scalar_fields = {
            name: data[:, i]
            for i, name in enumerate(properties)
            if name not in ('x', 'y', 'z')
        }

        return PointCloud(xyz=xyz, scalar_fields=scalar_fields)


def save_point_cloud_xyz(pc: PointCloud, filepath: str | Path) -> None:
    """
    Save a point cloud as an XYZ text file.

    Scalar fields are written as extra columns, named in a ``#`` comment
    header line.
    """
    header = " ".join(["x", "y", "z"] + pc.field_names)
    columns = [pc.xyz] + [values[:, None] for values in pc.scalar_fields.values()]
    np.savetxt(
        filepath,
        np.hstack(columns) if pc.num_points else np.empty((0, 3 + len(pc.field_names))),
        fmt="%.6f",
        header=header,
        comments="# ",
    )


def generate_sample_terrain(
    size: Tuple[float, float] = (100.0, 100.0),
    resolution: float = 1.0,
    base_elevation: float = 100.0,
    noise_scale: float = 5.0,
    hill_height: float = 10.0,
    seed: int = 42,
) -> PointCloud:
    """
    Generate synthetic terrain point cloud for testing.

    Creates a terrain with gentle hills and random noise, plus an
    ``intensity`` scalar field correlated with the height.

    Args:
        size: (width, height) in coordinate units
        resolution: Point spacing
        base_elevation: Base elevation value
        noise_scale: Amount of random noise
        hill_height: Maximum hill height
        seed: Random seed for reproducibility

    Returns:
        PointCloud with synthetic terrain
    """
    rng = np.random.default_rng(seed)

    width, height = size
    x = np.arange(0, width, resolution)
    y = np.arange(0, height, resolution)
    xx, yy = np.meshgrid(x, y)

    zz = base_elevation + (
        hill_height * np.sin(xx / 20) * np.cos(yy / 25) +
        hill_height * 0.5 * np.sin(xx / 10 + yy / 15) +
        noise_scale * rng.standard_normal(xx.shape)
    )

    xyz = np.column_stack([
        xx.ravel(),
        yy.ravel(),
        zz.ravel()
    ])

    intensity = np.clip((xyz[:, 2] - base_elevation) * 10 + 500, 0, None)

    return PointCloud(xyz=xyz, scalar_fields={"intensity": intensity})
