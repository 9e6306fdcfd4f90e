"""Point-cloud filters: axis crop, voxel grid, outlier removal, smoothing.

All functions take an (N, 3) array and return a new array; inputs are
never modified.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial import cKDTree

from terraseg.utils.geometry import AXES

logger = logging.getLogger(__name__)


def passthrough(points: np.ndarray, axis: str, min_value: float, max_value: float) -> np.ndarray:
    """Keep points whose coordinate on ``axis`` lies in [min_value, max_value]."""
    coords = points[:, AXES[axis]]
    mask = (coords >= min_value) & (coords <= max_value)
    return points[mask].copy()


def voxel_downsample(
    points: np.ndarray,
    leaf_x: float,
    leaf_y: float,
    leaf_z: float,
    axis: str | None = None,
    limits: tuple[float, float] | None = None,
) -> np.ndarray:
    """Replace the points of every occupied voxel by their centroid.

    Voxels are anchored at the cloud's minimum corner. When ``axis`` and
    ``limits`` are given, points outside that range are dropped first.
    Output order follows the voxel grid, not the input.
    """
    if axis is not None and limits is not None:
        points = passthrough(points, axis, limits[0], limits[1])
    if len(points) == 0:
        return np.empty((0, 3))

    leaf = np.array([leaf_x, leaf_y, leaf_z], dtype=np.float64)
    keys = np.floor((points - points.min(axis=0)) / leaf).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)

    sums = np.zeros((len(counts), 3))
    np.add.at(sums, inverse, points)
    return sums / counts[:, None]


def remove_statistical_outliers(
    points: np.ndarray, nb_neighbors: int = 20, std_ratio: float = 2.0
) -> np.ndarray:
    """Drop points whose mean neighbour distance exceeds mean + std_ratio * std (Open3D)."""
    if len(points) <= nb_neighbors:
        return points.copy()

    import open3d as o3d

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64))
    filtered, kept = pcd.remove_statistical_outlier(nb_neighbors=nb_neighbors, std_ratio=std_ratio)
    logger.debug(f"Statistical outlier removal kept {len(kept)}/{len(points)} points")
    return np.asarray(filtered.points, dtype=np.float64).copy()


def smooth_surface(points: np.ndarray, radius: float = 0.1, min_neighbors: int = 5) -> np.ndarray:
    """Moving-least-squares style smoothing.

    Each point is projected onto the best-fit plane of its radius
    neighbourhood. Points with fewer than ``min_neighbors`` neighbours are
    kept as they are.
    """
    if len(points) < 3:
        return points.copy()

    tree = cKDTree(points)
    smoothed = points.copy()
    num_projected = 0
    for i, neighbors in enumerate(tree.query_ball_point(points, r=radius)):
        if len(neighbors) < max(min_neighbors, 3):
            continue
        local = points[neighbors]
        centroid = local.mean(axis=0)
        _, _, Vt = np.linalg.svd(local - centroid, full_matrices=False)
        normal = Vt[-1]
        smoothed[i] = points[i] - np.dot(points[i] - centroid, normal) * normal
        num_projected += 1

    logger.debug(f"Surface smoothing projected {num_projected}/{len(points)} points")
    return smoothed
