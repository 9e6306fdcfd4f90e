"""Step 03: Per-cluster plane extraction with plane consolidation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

import numpy as np

from terraseg.core.step_base import BaseStep
from terraseg.utils.io import load_clusters, write_json
from ._decomposition import decompose
from ._models import SceneModel
from .config import PlaneExtractionConfig
from .contracts import (
    DetectedCluster,
    DetectedPlane,
    PlaneExtractionInput,
    PlaneExtractionOutput,
    SceneSummary,
)

logger = logging.getLogger(__name__)


def decompose_scene(
    clusters: list[np.ndarray], config: PlaneExtractionConfig, frame_id: str = "map"
) -> SceneModel:
    """Run the per-cluster decomposition and wrap it in a SceneModel."""
    records = decompose(
        clusters,
        config.extraction_params(),
        seed=config.seed,
        workers=config.workers,
        up_axis=config.up_axis,
        step_angle_threshold=config.step_angle_threshold,
    )
    return SceneModel(frame_id=frame_id, clusters=records)


def summarize_scene(scene: SceneModel) -> SceneSummary:
    clusters = []
    for record in scene.clusters:
        planes = [
            DetectedPlane(
                id=j,
                cluster_index=record.index,
                normal=list(plane.model.normal),
                offset=plane.model.offset,
                label=plane.label,
                num_inliers=plane.num_inliers,
                centroid=plane.centroid.tolist(),
                variance=plane.variance,
            )
            for j, plane in enumerate(record.planes)
        ]
        clusters.append(
            DetectedCluster(
                index=record.index,
                num_points=record.num_points,
                num_residual_points=len(record.residual_indices),
                planes=planes,
            )
        )
    return SceneSummary(frame_id=scene.frame_id, clusters=clusters)


def save_scene_points(scene: SceneModel, path: Path) -> Path:
    """Inlier points per plane and residual points per cluster, in one .npz."""
    arrays: dict[str, np.ndarray] = {}
    for record in scene.clusters:
        for j, plane in enumerate(record.planes):
            arrays[f"cluster_{record.index:04d}_plane_{j:02d}"] = plane.points
        arrays[f"cluster_{record.index:04d}_residual"] = record.residual
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(str(path), **arrays)
    return path


class PlaneExtractionStep(
    BaseStep[PlaneExtractionInput, PlaneExtractionOutput, PlaneExtractionConfig]
):
    name: ClassVar[str] = "s03_plane_extraction"
    input_type: ClassVar = PlaneExtractionInput
    output_type: ClassVar = PlaneExtractionOutput
    config_type: ClassVar = PlaneExtractionConfig

    def validate_inputs(self, inputs: PlaneExtractionInput) -> bool:
        return inputs.clusters_path.exists()

    def run(self, inputs: PlaneExtractionInput) -> PlaneExtractionOutput:
        output_dir = self.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        clusters = load_clusters(inputs.clusters_path)
        logger.info(f"Decomposing {len(clusters)} clusters")
        scene = decompose_scene(clusters, self.config, inputs.frame_id)

        summary = summarize_scene(scene)
        scene_file = write_json(summary.model_dump(), self.data_root / "processed" / "scene.json")
        planes_file = save_scene_points(scene, output_dir / "plane_points.npz")

        labels = [p.label for _, p in scene.planes()]
        num_steps = labels.count("step")
        num_risers = labels.count("riser")
        logger.info(
            f"Extracted {scene.num_planes} planes from {len(scene.clusters)} clusters: "
            f"{num_steps} steps, {num_risers} risers, {scene.num_residual_points} residual points"
        )

        return PlaneExtractionOutput(
            scene_file=scene_file,
            planes_file=planes_file,
            num_clusters=len(scene.clusters),
            num_planes=scene.num_planes,
            num_steps=num_steps,
            num_risers=num_risers,
            num_residual_points=scene.num_residual_points,
        )
