"""Per-cluster decomposition: run the plane extractor on every cluster.

Each cluster is an independent unit of work with its own registry,
remaining set and random generator (spawned from one seed), so the
output does not depend on execution order. With ``workers > 1`` the
clusters run on a thread pool; results are still returned in input
order, indexed by cluster position.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from terraseg.core.errors import PartitionError
from terraseg.utils.geometry import tilt_from_axis_deg
from ._extractor import ExtractionParams, extract_planes
from ._models import ClusterRecord

logger = logging.getLogger(__name__)


def classify_plane(normal: np.ndarray, up_axis: str = "z", step_angle_threshold: float = 30.0) -> str:
    """'step' for near-horizontal surfaces (tread/ground), 'riser' otherwise."""
    if tilt_from_axis_deg(normal, up_axis) < step_angle_threshold:
        return "step"
    return "riser"


def check_partition(record: ClusterRecord) -> None:
    """Raise PartitionError unless planes + residual cover every cluster point exactly once."""
    parts = [p.indices for p in record.planes] + [record.residual_indices]
    assigned = np.concatenate(parts) if parts else np.empty(0, dtype=np.intp)
    if len(assigned) != record.num_points:
        raise PartitionError(
            f"Cluster {record.index}: {len(assigned)} assigned points for {record.num_points} inputs"
        )
    if not np.array_equal(np.sort(assigned), np.arange(record.num_points)):
        raise PartitionError(f"Cluster {record.index}: overlapping or missing point indices")


def decompose_cluster(
    index: int,
    points: np.ndarray,
    params: ExtractionParams,
    rng: np.random.Generator,
    up_axis: str = "z",
    step_angle_threshold: float = 30.0,
) -> ClusterRecord:
    """Extract up to ``params.max_planes`` planes from one cluster."""
    result = extract_planes(points, params, rng)
    for plane in result.planes:
        plane.label = classify_plane(plane.model.normal_array, up_axis, step_angle_threshold)

    record = ClusterRecord(
        index=index,
        points=points,
        planes=result.planes,
        residual_indices=result.residual_indices,
    )
    check_partition(record)

    for j, plane in enumerate(record.planes):
        logger.info(f"Cluster {index}, Plane {j + 1}: {plane.label}, {plane.num_inliers} points")
    logger.info(
        f"Cluster {index}: {len(record.planes)} planes after {result.iterations} iterations "
        f"({result.stop_reason.value}), {len(record.residual_indices)} residual points"
    )
    return record


def decompose(
    clusters: Sequence[np.ndarray],
    params: ExtractionParams,
    seed: int | None = 0,
    workers: int = 1,
    up_axis: str = "z",
    step_angle_threshold: float = 30.0,
) -> list[ClusterRecord]:
    """Decompose every cluster independently.

    Args:
        clusters: Cluster point arrays; a cluster's position is its index.
        params: Extraction parameters; ``max_planes`` is the per-cluster budget.
        seed: Root seed; each cluster gets its own spawned generator.
        workers: Thread pool size (1 = sequential).
        up_axis: Axis used for step/riser labelling.
        step_angle_threshold: Max tilt (degrees) of a 'step' plane.

    Returns:
        One ClusterRecord per input cluster, in input order.
    """
    if not clusters:
        return []

    children = np.random.SeedSequence(seed).spawn(len(clusters))

    def run(i: int) -> ClusterRecord:
        return decompose_cluster(
            i,
            np.asarray(clusters[i], dtype=np.float64),
            params,
            np.random.default_rng(children[i]),
            up_axis=up_axis,
            step_angle_threshold=step_angle_threshold,
        )

    if workers <= 1 or len(clusters) == 1:
        return [run(i) for i in range(len(clusters))]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        # map() yields in submission order, i.e. by cluster index
        return list(executor.map(run, range(len(clusters))))
