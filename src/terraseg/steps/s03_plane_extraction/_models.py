"""In-memory scene model: planes, plane records, clusters.

Points are (N, 3) float64 arrays. A cluster's planes and residual refer
to the cluster's points by index, so duplicate coordinates never make
membership ambiguous.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from terraseg.core.errors import DegenerateGeometry
from terraseg.utils.geometry import angle_between, orient_plane

_MIN_NORM = 1e-12


@dataclass(frozen=True)
class PlaneModel:
    """Plane ``normal · p + offset = 0`` with a unit normal."""

    normal: tuple[float, float, float]
    offset: float

    @classmethod
    def from_coefficients(cls, a: float, b: float, c: float, d: float) -> PlaneModel:
        """Build from raw (A, B, C, D), normalizing by ||(A, B, C)||."""
        norm = math.sqrt(a * a + b * b + c * c)
        if not math.isfinite(norm) or norm < _MIN_NORM:
            raise DegenerateGeometry(f"Plane normal has zero length: ({a}, {b}, {c})")
        return cls(normal=(a / norm, b / norm, c / norm), offset=d / norm)

    @property
    def normal_array(self) -> np.ndarray:
        return np.asarray(self.normal, dtype=np.float64)

    @property
    def coefficients(self) -> tuple[float, float, float, float]:
        return (*self.normal, self.offset)

    def oriented(self) -> PlaneModel:
        """Same plane with its normal facing the sensor origin (offset >= 0)."""
        normal, offset = orient_plane(self.normal_array, self.offset)
        return PlaneModel(normal=tuple(float(v) for v in normal), offset=float(offset))

    def distance(self, points: np.ndarray) -> np.ndarray:
        """Signed point-to-plane distances."""
        return points @ self.normal_array + self.offset

    def angle_to(self, other: PlaneModel) -> float:
        return angle_between(self.normal_array, other.normal_array)


@dataclass
class PlaneRecord:
    """A plane together with the cluster points currently assigned to it."""

    model: PlaneModel
    indices: np.ndarray
    points: np.ndarray
    label: str = ""

    @property
    def num_inliers(self) -> int:
        return len(self.indices)

    @property
    def centroid(self) -> np.ndarray:
        return self.points.mean(axis=0)

    @property
    def variance(self) -> float:
        """Mean squared point-to-plane distance of the inliers."""
        if len(self.points) == 0:
            return 0.0
        return float(np.mean(self.model.distance(self.points) ** 2))


@dataclass
class ClusterRecord:
    index: int
    points: np.ndarray
    planes: list[PlaneRecord] = field(default_factory=list)
    residual_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.intp))

    @property
    def residual(self) -> np.ndarray:
        return self.points[self.residual_indices]

    @property
    def num_points(self) -> int:
        return len(self.points)


@dataclass
class SceneModel:
    """Decomposition of one frame."""

    frame_id: str
    clusters: list[ClusterRecord] = field(default_factory=list)

    @property
    def num_planes(self) -> int:
        return sum(len(c.planes) for c in self.clusters)

    @property
    def num_residual_points(self) -> int:
        return sum(len(c.residual_indices) for c in self.clusters)

    def planes(self) -> list[tuple[int, PlaneRecord]]:
        """All planes as (cluster index, record) pairs in cluster order."""
        return [(c.index, p) for c in self.clusters for p in c.planes]
