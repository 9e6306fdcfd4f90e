"""Step 02: Split the filtered cloud into spatially connected clusters."""

from __future__ import annotations

import logging
from typing import ClassVar

import numpy as np

from terraseg.core.step_base import BaseStep
from terraseg.steps.s01_preprocess._filters import voxel_downsample
from terraseg.utils.io import save_clusters, write_json
from ._euclidean import euclidean_clusters, resolve_size_bounds
from ._normals import estimate_normals
from .config import ClusteringConfig
from .contracts import ClusteringInput, ClusteringOutput, ClusterSummary

logger = logging.getLogger(__name__)


def cluster_points(points: np.ndarray, config: ClusteringConfig) -> list[np.ndarray]:
    """Return cluster point arrays (not indices) in cluster order."""
    if config.method == "none":
        clusters = [points.copy()] if len(points) else []
    else:
        min_size, max_size = resolve_size_bounds(
            len(points),
            config.min_cluster_size,
            config.max_cluster_size,
            config.min_cluster_ratio,
            config.max_cluster_ratio,
        )
        normals = None
        if config.use_normals:
            normals = estimate_normals(points, k=config.normal_k)
        index_sets = euclidean_clusters(
            points,
            config.cluster_tolerance,
            min_size,
            max_size,
            normals=normals,
            angle_threshold_deg=config.normal_angle_threshold if config.use_normals else None,
        )
        clusters = [points[idx] for idx in index_sets]

    if config.downsample_clusters:
        leaf = config.cluster_leaf
        downsampled = []
        for i, cluster in enumerate(clusters):
            small = voxel_downsample(cluster, leaf.x, leaf.y, leaf.z)
            logger.info(f"Cluster {i}: {len(cluster)} -> {len(small)} points after downsampling")
            downsampled.append(small)
        clusters = downsampled

    return clusters


def summarize_cluster(index: int, cluster: np.ndarray) -> ClusterSummary:
    return ClusterSummary(
        index=index,
        num_points=len(cluster),
        centroid=cluster.mean(axis=0).tolist(),
        bbox_min=cluster.min(axis=0).tolist(),
        bbox_max=cluster.max(axis=0).tolist(),
    )


class ClusteringStep(BaseStep[ClusteringInput, ClusteringOutput, ClusteringConfig]):
    name: ClassVar[str] = "s02_clustering"
    input_type: ClassVar = ClusteringInput
    output_type: ClassVar = ClusteringOutput
    config_type: ClassVar = ClusteringConfig

    def validate_inputs(self, inputs: ClusteringInput) -> bool:
        return inputs.filtered_points_path.exists()

    def run(self, inputs: ClusteringInput) -> ClusteringOutput:
        output_dir = self.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        points = np.load(str(inputs.filtered_points_path))
        clusters = cluster_points(points, self.config)

        summaries = [summarize_cluster(i, c) for i, c in enumerate(clusters)]
        for s in summaries:
            logger.info(f"Cluster {s.index} with {s.num_points} points")

        clusters_path = save_clusters(clusters, output_dir / "clusters.npz")
        summary_path = write_json(
            {"frame_id": inputs.frame_id, "clusters": [s.model_dump() for s in summaries]},
            output_dir / "clusters.json",
        )

        return ClusteringOutput(
            clusters_path=clusters_path,
            summary_path=summary_path,
            num_clusters=len(clusters),
            num_clustered_points=sum(len(c) for c in clusters),
            frame_id=inputs.frame_id,
        )
