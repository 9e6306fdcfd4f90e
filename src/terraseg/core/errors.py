"""Error types raised inside the perception pipeline.

Only ``MalformedInput`` is meant to reach a caller. The geometric errors
below are control flow: the plane extractor and the cluster decomposition
catch them and turn them into "no plane here".
"""

from __future__ import annotations


class TerrasegError(Exception):
    """Base class for all terraseg errors."""


class MalformedInput(TerrasegError, ValueError):
    """Input frame is unusable (wrong shape, empty, non-finite coordinates)."""


class InsufficientPoints(TerrasegError):
    """Fewer points than a model needs (3 for a plane)."""


class NoModelFound(TerrasegError):
    """RANSAC exhausted its trials without a plane with at least one inlier."""


class DegenerateGeometry(NoModelFound):
    """Sampled points are collinear or coincident."""


class PartitionError(TerrasegError, AssertionError):
    """Plane inliers plus residual do not partition the cluster."""
