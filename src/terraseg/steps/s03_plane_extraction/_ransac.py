"""RANSAC plane fitting.

Triples are sampled from an injected ``numpy.random.Generator`` and
scored in vectorized batches. The best model is optionally refined by a
least-squares refit of its inliers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from terraseg.core.errors import DegenerateGeometry, InsufficientPoints, NoModelFound
from terraseg.utils.geometry import fit_plane_lstsq
from ._models import PlaneModel

logger = logging.getLogger(__name__)

_MIN_CROSS_NORM = 1e-12
# Upper bound on points x trials evaluated per distance batch
_BATCH_BUDGET = 4_000_000


@dataclass(frozen=True)
class PlaneFit:
    model: PlaneModel
    inliers: np.ndarray  # sorted indices into the fitted points


def _sample_triples(n: int, num_trials: int, rng: np.random.Generator) -> np.ndarray:
    """(num_trials, 3) index triples, distinct within each row."""
    i0 = rng.integers(0, n, size=num_trials)
    i1 = rng.integers(0, n - 1, size=num_trials)
    i1 += i1 >= i0
    i2 = rng.integers(0, n - 2, size=num_trials)
    lo, hi = np.minimum(i0, i1), np.maximum(i0, i1)
    i2 += i2 >= lo
    i2 += i2 >= hi
    return np.column_stack([i0, i1, i2])


def _count_inliers(points: np.ndarray, normals: np.ndarray, offsets: np.ndarray,
                   threshold: float) -> np.ndarray:
    """Inlier count for every candidate plane, evaluated in memory-bounded batches."""
    counts = np.empty(len(normals), dtype=np.int64)
    batch = max(1, _BATCH_BUDGET // max(len(points), 1))
    for start in range(0, len(normals), batch):
        stop = start + batch
        dist = np.abs(points @ normals[start:stop].T + offsets[start:stop])
        counts[start:stop] = (dist <= threshold).sum(axis=0)
    return counts


def _inliers_of(points: np.ndarray, model: PlaneModel, threshold: float) -> np.ndarray:
    return np.flatnonzero(np.abs(model.distance(points)) <= threshold)


def fit_plane(
    points: np.ndarray,
    distance_threshold: float,
    max_trials: int = 1000,
    rng: np.random.Generator | None = None,
    optimize: bool = True,
) -> PlaneFit:
    """Find the plane with the most inliers among ``max_trials`` random triples.

    Args:
        points: (N, 3) points.
        distance_threshold: Max perpendicular distance of an inlier.
        max_trials: Number of sampled triples.
        rng: Random generator; pass a seeded one for reproducible fits.
        optimize: Refit the winning model to its inliers by least squares.

    Raises:
        InsufficientPoints: fewer than 3 points.
        DegenerateGeometry: every sampled triple was collinear/coincident.
        NoModelFound: the best model has no inliers.
    """
    n = len(points)
    if n < 3:
        raise InsufficientPoints(f"Plane fitting needs 3 points, got {n}")
    if rng is None:
        rng = np.random.default_rng()

    triples = _sample_triples(n, max_trials, rng)
    p0, p1, p2 = points[triples[:, 0]], points[triples[:, 1]], points[triples[:, 2]]
    cross = np.cross(p1 - p0, p2 - p0)
    norms = np.linalg.norm(cross, axis=1)
    valid = norms > _MIN_CROSS_NORM
    if not valid.any():
        raise DegenerateGeometry(f"All {max_trials} sampled triples are degenerate")

    normals = cross[valid] / norms[valid, None]
    offsets = -np.einsum("ij,ij->i", normals, p0[valid])
    counts = _count_inliers(points, normals, offsets, distance_threshold)

    best = int(np.argmax(counts))  # first maximum: ties keep the earlier trial
    if counts[best] == 0:
        raise NoModelFound("Best sampled plane has no inliers")

    model = PlaneModel.from_coefficients(*normals[best], offsets[best])
    inliers = _inliers_of(points, model, distance_threshold)

    if optimize and len(inliers) >= 3:
        normal, d = fit_plane_lstsq(points[inliers])
        try:
            refined = PlaneModel.from_coefficients(*normal, d)
        except DegenerateGeometry:
            refined = None
        if refined is not None:
            refined_inliers = _inliers_of(points, refined, distance_threshold)
            if len(refined_inliers) >= len(inliers):
                model, inliers = refined, refined_inliers

    logger.debug(
        f"RANSAC: {len(inliers)}/{n} inliers, {int(valid.sum())}/{max_trials} valid trials"
    )
    return PlaneFit(model=model.oriented(), inliers=inliers)
