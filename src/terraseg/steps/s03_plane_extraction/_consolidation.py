"""Plane consolidation: decide whether a new fit is a known surface or a new one.

Policy is first-match-wins. The registry is scanned in order and the
first similar entry is *replaced* by the candidate (no averaging). When
two entries are both similar to a candidate the earlier one is always
chosen, so results depend on registry order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from terraseg.utils.geometry import angle_between
from ._models import PlaneModel, PlaneRecord

logger = logging.getLogger(__name__)


def is_similar_plane(
    a: PlaneModel,
    b: PlaneModel,
    angle_tolerance: float,
    offset_tolerance: float,
) -> bool:
    """Normals within ``angle_tolerance`` (radians) and origin distances within ``offset_tolerance``.

    (n, d) and (-n, -d) are the same plane, so ``b`` is sign-aligned to ``a``
    before comparing.
    """
    n1, n2 = a.normal_array, b.normal_array
    d1 = a.offset / np.linalg.norm(n1)
    d2 = b.offset / np.linalg.norm(n2)
    if np.dot(n1, n2) < 0:
        n2, d2 = -n2, -d2
    angle = angle_between(n1, n2)
    offset_difference = abs(d1 - d2)
    return angle < angle_tolerance and offset_difference < offset_tolerance


def merge_or_add(
    registry: Sequence[PlaneModel],
    candidate: PlaneModel,
    angle_tolerance: float,
    offset_tolerance: float,
) -> tuple[list[PlaneModel], int | None]:
    """Replace the first similar registry entry with ``candidate``, or append it.

    Returns:
        (updated registry, index of the replaced entry or None if appended).
        The input sequence is left untouched.
    """
    updated = list(registry)
    for i, existing in enumerate(updated):
        if is_similar_plane(existing, candidate, angle_tolerance, offset_tolerance):
            updated[i] = candidate
            return updated, i
    updated.append(candidate)
    return updated, None


class PlaneRegistry:
    """Plane records found during one decomposition run.

    Lives for exactly one extraction call (one cluster, or one whole
    cloud) and is never shared.
    """

    def __init__(self, angle_tolerance: float, offset_tolerance: float):
        self.angle_tolerance = angle_tolerance
        self.offset_tolerance = offset_tolerance
        self.records: list[PlaneRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    @property
    def models(self) -> list[PlaneModel]:
        return [r.model for r in self.records]

    def consolidate(
        self, model: PlaneModel, indices: np.ndarray, points: np.ndarray
    ) -> tuple[int, np.ndarray | None]:
        """Record a fitted plane.

        Returns:
            (slot, displaced): the registry slot the plane now occupies and,
            when an existing record was replaced, that record's former
            inlier indices (None for a new plane).
        """
        models, matched = merge_or_add(
            self.models, model, self.angle_tolerance, self.offset_tolerance
        )
        record = PlaneRecord(model=model, indices=indices, points=points)
        if matched is None:
            self.records.append(record)
            return len(models) - 1, None

        displaced = self.records[matched].indices
        self.records[matched] = record
        logger.debug(
            f"Plane matched registry slot {matched}: replaced {len(displaced)} inliers "
            f"with {len(indices)}"
        )
        return matched, displaced
