"""3D geometry utilities: plane math shared by the fitting and labelling code."""

from __future__ import annotations

import math

import numpy as np

AXES = {"x": 0, "y": 1, "z": 2}


def axis_vector(axis: str) -> np.ndarray:
    """Unit vector for 'x', 'y' or 'z'."""
    vec = np.zeros(3)
    vec[AXES[axis]] = 1.0
    return vec


def orient_plane(normal: np.ndarray, d: float, eps: float = 1e-9) -> tuple[np.ndarray, float]:
    """Flip (normal, d) so the normal faces the sensor origin, i.e. d >= 0.

    Planes through the origin (|d| < eps) fall back to making the
    largest-magnitude normal component positive.
    """
    if abs(d) >= eps:
        if d < 0:
            return -normal, -d
        return normal, d
    if normal[int(np.argmax(np.abs(normal)))] < 0:
        return -normal, -d
    return normal, d


def fit_plane_lstsq(points: np.ndarray) -> tuple[np.ndarray, float]:
    """Total least-squares plane through points (SVD of centered coordinates).

    Returns (unit normal, d) with normal·p + d = 0.
    """
    centroid = points.mean(axis=0)
    _, _, Vt = np.linalg.svd(points - centroid, full_matrices=False)
    normal = Vt[-1]  # smallest singular value = plane normal
    normal = normal / np.linalg.norm(normal)
    return normal, float(-normal @ centroid)


def angle_between(n1: np.ndarray, n2: np.ndarray) -> float:
    """Angle in radians between two (not necessarily unit) vectors."""
    cos_angle = float(np.dot(n1, n2) / (np.linalg.norm(n1) * np.linalg.norm(n2)))
    return math.acos(min(1.0, max(-1.0, cos_angle)))


def tilt_from_axis_deg(normal: np.ndarray, axis: str = "z") -> float:
    """Unsigned angle (degrees) between a plane normal and an axis, in [0, 90]."""
    cos_angle = abs(float(np.dot(normal, axis_vector(axis)))) / float(np.linalg.norm(normal))
    return math.degrees(math.acos(min(1.0, cos_angle)))
