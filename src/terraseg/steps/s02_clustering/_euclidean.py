"""Euclidean cluster extraction on a KD-tree radius graph.

Two points are connected when they lie within ``tolerance`` of each other
and, if normals are supplied, their normals agree to within an angle
threshold. Connected components are found with union-find; components
outside [min_size, max_size] are dropped whole.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

import numpy as np
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)


def _union_find_components(n: int, edges: np.ndarray) -> list[np.ndarray]:
    """Union-find connected components.

    Args:
        n: Number of nodes.
        edges: (E, 2) array of node index pairs.

    Returns:
        Components as sorted index arrays, ordered by their smallest index.
    """
    parent = list(range(n))
    rank = [0] * n

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(a: int, b: int) -> None:
        ra, rb = find(a), find(b)
        if ra == rb:
            return
        if rank[ra] < rank[rb]:
            ra, rb = rb, ra
        parent[rb] = ra
        if rank[ra] == rank[rb]:
            rank[ra] += 1

    for a, b in edges.tolist():
        union(a, b)

    groups: dict[int, list[int]] = defaultdict(list)
    for i in range(n):
        groups[find(i)].append(i)

    return [np.asarray(members, dtype=np.intp) for members in groups.values()]


def resolve_size_bounds(
    num_points: int,
    min_size: int | None = None,
    max_size: int | None = None,
    min_ratio: float = 0.1,
    max_ratio: float = 0.5,
) -> tuple[int, int]:
    """Absolute cluster size bounds; explicit sizes win over ratios of the cloud size."""
    lo = min_size if min_size is not None else int(num_points * min_ratio)
    hi = max_size if max_size is not None else int(num_points * max_ratio)
    return max(lo, 1), hi


def euclidean_clusters(
    points: np.ndarray,
    tolerance: float,
    min_size: int,
    max_size: int,
    normals: np.ndarray | None = None,
    angle_threshold_deg: float | None = None,
) -> list[np.ndarray]:
    """Partition ``points`` into spatially connected clusters.

    Args:
        points: (N, 3) point cloud.
        tolerance: Maximum gap (meters) between neighbouring cluster members.
        min_size: Smallest cluster kept.
        max_size: Largest cluster kept.
        normals: Optional (N, 3) unit normals for the compatibility predicate.
        angle_threshold_deg: Max angle between neighbouring normals (sign ignored).

    Returns:
        Index arrays into ``points``, disjoint, each of length in [min_size, max_size].
    """
    n = len(points)
    if n == 0:
        return []

    tree = cKDTree(points)
    edges = tree.query_pairs(r=tolerance, output_type="ndarray")

    if normals is not None and angle_threshold_deg is not None and len(edges):
        cos_thresh = math.cos(math.radians(angle_threshold_deg))
        dots = np.abs(np.einsum("ij,ij->i", normals[edges[:, 0]], normals[edges[:, 1]]))
        edges = edges[dots > cos_thresh]

    components = _union_find_components(n, edges)

    kept = [c for c in components if min_size <= len(c) <= max_size]
    num_dropped = len(components) - len(kept)
    logger.info(
        f"Found {len(components)} connected components from {n} points; "
        f"kept {len(kept)} within [{min_size}, {max_size}], dropped {num_dropped}"
    )
    return kept
