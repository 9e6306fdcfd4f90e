"""I/O utilities: point-cloud readers/writers and JSON artifacts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from terraseg.core.errors import MalformedInput

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".npy", ".xyz", ".txt", ".csv", ".ply", ".pcd")


# ── Point readers ────────────────────────────────────────────────────

def _load_text_points(path: Path) -> np.ndarray:
    delimiter = "," if path.suffix.lower() == ".csv" else None
    return np.loadtxt(str(path), delimiter=delimiter, ndmin=2, usecols=(0, 1, 2))


def _load_open3d_points(path: Path) -> np.ndarray:
    """Load a PLY/PCD point cloud via Open3D."""
    import open3d as o3d

    pcd = o3d.io.read_point_cloud(str(path))
    return np.asarray(pcd.points, dtype=np.float64).copy()


def load_points(path: Path) -> np.ndarray:
    """Read an (N, 3) float64 array of XYZ points from disk.

    Supports .npy, whitespace/comma separated text, and .ply/.pcd (Open3D).
    Shape is checked here; finiteness is checked by ``validate_points``.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        points = np.load(str(path))
    elif suffix in (".xyz", ".txt", ".csv"):
        points = _load_text_points(path)
    elif suffix in (".ply", ".pcd"):
        points = _load_open3d_points(path)
    else:
        raise MalformedInput(f"Unsupported point file format: {suffix} ({path})")

    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 3:
        raise MalformedInput(f"Expected (N, 3) points, got shape {points.shape} from {path}")
    logger.info(f"Loaded {len(points)} points from {path.name}")
    return points[:, :3]


def validate_points(points: np.ndarray, drop_non_finite: bool = False) -> np.ndarray:
    """Check an ingested frame before it enters the pipeline.

    Non-finite rows raise ``MalformedInput`` unless ``drop_non_finite`` is set,
    in which case they are removed and reported.
    """
    if points.ndim != 2 or points.shape[1] != 3:
        raise MalformedInput(f"Expected (N, 3) points, got shape {points.shape}")
    finite = np.isfinite(points).all(axis=1)
    num_bad = int((~finite).sum())
    if num_bad:
        if not drop_non_finite:
            raise MalformedInput(f"Frame has {num_bad} points with non-finite coordinates")
        logger.warning(f"Dropped {num_bad} non-finite points")
        points = points[finite]
    if len(points) == 0:
        raise MalformedInput("Frame has no points")
    return points


# ── Writers ──────────────────────────────────────────────────────────

def save_points(points: np.ndarray, path: Path) -> Path:
    """Save points as .npy (the pipeline's interchange format)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.save(str(path), np.asarray(points, dtype=np.float64))
    return path


def save_clusters(clusters: list[np.ndarray], path: Path) -> Path:
    """Save a list of (Ni, 3) arrays into one .npz, keyed cluster_0000 ..."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    arrays = {f"cluster_{i:04d}": np.asarray(c, dtype=np.float64) for i, c in enumerate(clusters)}
    np.savez(str(path), **arrays)
    return path


def load_clusters(path: Path) -> list[np.ndarray]:
    """Inverse of ``save_clusters``; clusters come back in index order."""
    with np.load(str(path)) as data:
        keys = sorted(
            (k for k in data.files if k.startswith("cluster_")),
            key=lambda k: int(k.split("_")[1]),
        )
        return [data[k] for k in keys]


def write_json(data: Any, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return path


def read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)
