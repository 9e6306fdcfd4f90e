"""Iterative plane extraction ("extract and deflate").

Repeatedly fits the dominant plane of the points not yet explained,
consolidates it against the planes already found, and removes its
inliers, until one of the guards stops the loop:

- ``max_iterations`` fits have been made,
- 3 or fewer points remain,
- ``max_planes`` distinct planes are registered,
- the remaining share of the input drops to ``remaining_ratio``,
- RANSAC finds no model, or the best model has fewer than ``min_inliers``.

When a fit replaces an existing plane record, the record's previous
inliers become residual points. They are not fed back into the loop, so
every input point ends in exactly one plane or in the residual.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from pydantic import BaseModel, Field

from terraseg.core.errors import InsufficientPoints, NoModelFound
from ._consolidation import PlaneRegistry
from ._models import PlaneRecord
from ._ransac import fit_plane

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    MAX_ITERATIONS = "max_iterations"
    TOO_FEW_POINTS = "too_few_points"
    MAX_PLANES = "max_planes"
    COVERAGE_REACHED = "coverage_reached"
    NO_MODEL = "no_model"
    BELOW_MIN_INLIERS = "below_min_inliers"


class ExtractionParams(BaseModel):
    distance_threshold: float = Field(0.03, gt=0, description="RANSAC inlier distance (meters)")
    max_iterations: int = Field(10, ge=0, description="Maximum fit/remove rounds")
    max_planes: int = Field(2, ge=0, description="Maximum distinct planes per run")
    min_inliers: int = Field(1, ge=1, description="Fits with fewer inliers stop the run")
    ransac_trials: int = Field(1000, ge=1, description="Sampled triples per RANSAC fit")
    angle_tolerance: float = Field(0.1, gt=0, description="Max normal angle (radians) for 'same plane'")
    offset_tolerance: float | None = Field(
        None, gt=0, description="Max offset difference for 'same plane' (default 5 x distance_threshold)"
    )
    remaining_ratio: float = Field(0.0, ge=0, le=1, description="Stop once remaining/input <= this")
    optimize_coefficients: bool = Field(True, description="Least-squares refit of each RANSAC winner")
    sort_by_offset: bool = Field(False, description="Order output planes by ascending offset")

    @property
    def resolved_offset_tolerance(self) -> float:
        if self.offset_tolerance is not None:
            return self.offset_tolerance
        return 5.0 * self.distance_threshold


@dataclass
class ExtractionResult:
    planes: list[PlaneRecord]
    residual_indices: np.ndarray
    iterations: int
    stop_reason: StopReason
    num_replaced: int = 0
    history: list[int | None] = field(default_factory=list)


def _stop_reason(iteration: int, remaining: int, registered: int, total: int,
                 params: ExtractionParams) -> StopReason | None:
    if iteration >= params.max_iterations:
        return StopReason.MAX_ITERATIONS
    if remaining <= 3:
        return StopReason.TOO_FEW_POINTS
    if registered >= params.max_planes:
        return StopReason.MAX_PLANES
    if remaining <= params.remaining_ratio * total:
        return StopReason.COVERAGE_REACHED
    return None


def extract_planes(
    points: np.ndarray,
    params: ExtractionParams,
    rng: np.random.Generator | None = None,
) -> ExtractionResult:
    """Decompose ``points`` into planes plus a residual.

    Args:
        points: (N, 3) points of one cluster (or a whole cloud).
        params: Loop guards, RANSAC and consolidation tolerances.
        rng: Random generator for RANSAC sampling.

    Returns:
        ExtractionResult whose plane indices and residual indices refer to
        ``points`` and partition ``range(len(points))``.
    """
    if rng is None:
        rng = np.random.default_rng()

    total = len(points)
    remaining = np.arange(total, dtype=np.intp)
    displaced_sets: list[np.ndarray] = []
    registry = PlaneRegistry(params.angle_tolerance, params.resolved_offset_tolerance)
    history: list[int | None] = []
    iteration = 0

    while True:
        stop = _stop_reason(iteration, len(remaining), len(registry), total, params)
        if stop is not None:
            break

        try:
            fit = fit_plane(
                points[remaining],
                params.distance_threshold,
                max_trials=params.ransac_trials,
                rng=rng,
                optimize=params.optimize_coefficients,
            )
        except (NoModelFound, InsufficientPoints) as exc:
            logger.debug(f"Iteration {iteration}: {exc}")
            stop = StopReason.NO_MODEL
            break

        if len(fit.inliers) < params.min_inliers:
            logger.debug(
                f"Iteration {iteration}: {len(fit.inliers)} inliers < min {params.min_inliers}"
            )
            stop = StopReason.BELOW_MIN_INLIERS
            break

        inlier_indices = remaining[fit.inliers]
        slot, displaced = registry.consolidate(fit.model, inlier_indices, points[inlier_indices])
        if displaced is not None:
            displaced_sets.append(displaced)
            history.append(slot)
        else:
            history.append(None)

        remaining = np.delete(remaining, fit.inliers)
        iteration += 1

    residual = np.sort(np.concatenate([remaining, *displaced_sets]))
    planes = list(registry.records)
    if params.sort_by_offset:
        planes.sort(key=lambda r: r.model.offset)

    return ExtractionResult(
        planes=planes,
        residual_indices=residual,
        iterations=iteration,
        stop_reason=stop,
        num_replaced=len(displaced_sets),
        history=history,
    )
