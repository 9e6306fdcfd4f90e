"""Per-point normals for the clustering compatibility predicate (Open3D)."""

from __future__ import annotations

import numpy as np


def estimate_normals(
    points: np.ndarray,
    k: int = 20,
    viewpoint: np.ndarray | None = None,
) -> np.ndarray:
    """Per-point unit normals, oriented towards ``viewpoint`` (sensor origin by default).

    Args:
        points: (N, 3) point cloud.
        k: Neighbourhood size for the KNN covariance (clipped to N).
        viewpoint: (3,) sensor position.

    Returns:
        (N, 3) normals. Clouds with fewer than 3 points get zero normals.
    """
    n = len(points)
    if n < 3:
        return np.zeros((n, 3))

    import open3d as o3d

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64))
    pcd.estimate_normals(search_param=o3d.geometry.KDTreeSearchParamKNN(knn=min(k, n)))

    if viewpoint is None:
        viewpoint = np.zeros(3)
    pcd.orient_normals_towards_camera_location(
        camera_location=np.asarray(viewpoint, dtype=np.float64)
    )
    return np.asarray(pcd.normals, dtype=np.float64).copy()
