"""Shared pytest fixtures for terraseg tests."""

from pathlib import Path

import numpy as np
import pytest


def _has_open3d() -> bool:
    try:
        import open3d  # noqa: F401
        return True
    except ImportError:
        return False


requires_open3d = pytest.mark.skipif(not _has_open3d(), reason="open3d not installed")


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Create a temporary data root with standard directory structure."""
    for subdir in ["raw", "interim/s00_load_scan", "interim/s01_preprocess",
                   "interim/s02_clustering", "interim/s03_plane_extraction", "processed"]:
        (tmp_path / subdir).mkdir(parents=True, exist_ok=True)
    return tmp_path


def make_orthogonal_planes(n_per_plane: int = 500, n_noise: int = 50, seed: int = 7) -> np.ndarray:
    """Floor z=0 and wall x=0 over the unit square, plus uniform noise in the unit cube."""
    rng = np.random.default_rng(seed)
    floor = np.column_stack([
        rng.uniform(0, 1, n_per_plane),
        rng.uniform(0, 1, n_per_plane),
        rng.normal(0, 0.001, n_per_plane),
    ])
    wall = np.column_stack([
        rng.normal(0, 0.001, n_per_plane),
        rng.uniform(0, 1, n_per_plane),
        rng.uniform(0, 1, n_per_plane),
    ])
    noise = rng.uniform(0, 1, (n_noise, 3))
    return np.vstack([floor, wall, noise])


def make_grid_blob(center, size: float = 0.3, spacing: float = 0.05) -> np.ndarray:
    """Dense cubic grid of points around ``center`` (every point has a neighbour at ``spacing``)."""
    ticks = np.arange(-size / 2, size / 2 + 1e-9, spacing)
    gx, gy, gz = np.meshgrid(ticks, ticks, ticks, indexing="ij")
    return np.column_stack([gx.ravel(), gy.ravel(), gz.ravel()]) + np.asarray(center, dtype=float)


def make_stair_step(x0: float, h0: float, rise: float = 0.2, run: float = 0.3,
                    width: float = 1.0, spacing: float = 0.02) -> np.ndarray:
    """One stair step: riser on the plane x=x0, tread on the plane z=h0+rise.

    The riser's top row and the tread's front row share coordinates, so the
    result contains duplicate points.
    """
    ys = np.arange(-width / 2, width / 2 + 1e-9, spacing)
    zs = np.arange(h0, h0 + rise + 1e-9, spacing)
    xs = np.arange(x0, x0 + run + 1e-9, spacing)
    ry, rz = np.meshgrid(ys, zs, indexing="ij")
    riser = np.column_stack([np.full(ry.size, x0), ry.ravel(), rz.ravel()])
    tx, ty = np.meshgrid(xs, ys, indexing="ij")
    tread = np.column_stack([tx.ravel(), ty.ravel(), np.full(tx.size, h0 + rise)])
    return np.vstack([riser, tread])


def make_diagonal_wall(n: int = 300, shift: float = 0.0, sigma: float = 0.0005, seed: int = 0) -> np.ndarray:
    """Vertical wall on the plane x - y = 0.5 (mixed-sign normal), moved ``shift`` along its normal."""
    rng = np.random.default_rng(seed)
    u = rng.uniform(-0.5, 0.5, n)
    z = rng.uniform(0, 1, n)
    base = np.column_stack([0.25 + u, -0.25 + u, z])
    normal = np.array([1.0, -1.0, 0.0]) / np.sqrt(2)
    return base + np.outer(shift + rng.normal(0, sigma, n), normal)


@pytest.fixture
def orthogonal_planes() -> np.ndarray:
    return make_orthogonal_planes()


@pytest.fixture
def two_blobs() -> np.ndarray:
    return np.vstack([make_grid_blob([0.0, 0.0, 0.0]), make_grid_blob([2.0, 0.0, 0.0])])


@pytest.fixture
def stair_scan() -> np.ndarray:
    """Two stair steps 1 m apart along x (two separate clusters)."""
    return np.vstack([make_stair_step(0.0, 0.0), make_stair_step(1.3, 0.2)])


@pytest.fixture
def stair_scan_file(data_root: Path, stair_scan: np.ndarray) -> Path:
    path = data_root / "raw" / "scan.npy"
    np.save(str(path), stair_scan)
    return path
