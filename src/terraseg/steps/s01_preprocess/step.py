"""Step 01: Axis crop, voxel downsampling, optional outlier removal and smoothing."""

from __future__ import annotations

import logging
from typing import ClassVar

import numpy as np

from terraseg.core.step_base import BaseStep
from terraseg.utils.io import save_points, write_json
from ._filters import passthrough, remove_statistical_outliers, smooth_surface, voxel_downsample
from .config import PreprocessConfig
from .contracts import PreprocessInput, PreprocessOutput

logger = logging.getLogger(__name__)


def preprocess_points(points: np.ndarray, config: PreprocessConfig) -> tuple[np.ndarray, dict[str, int]]:
    """Apply the configured filter chain. Returns (points, stage -> count)."""
    counts: dict[str, int] = {"input": len(points)}

    for crop in config.passthrough:
        points = passthrough(points, crop.axis, crop.min, crop.max)
        counts[f"passthrough_{crop.axis}"] = len(points)
        logger.info(f"After passthrough {crop.axis} [{crop.min}, {crop.max}]: {len(points)} points")

    if config.voxel_downsample and len(points):
        leaf = config.voxel_leaf
        limits = config.voxel_filter_limits if config.voxel_filter_axis else None
        points = voxel_downsample(
            points, leaf.x, leaf.y, leaf.z, axis=config.voxel_filter_axis, limits=limits,
        )
        counts["voxel_downsample"] = len(points)
        logger.info(f"After downsampling ({leaf.x}, {leaf.y}, {leaf.z}): {len(points)} points")

    if config.remove_outliers and len(points):
        points = remove_statistical_outliers(
            points, config.outlier_nb_neighbors, config.outlier_std_ratio,
        )
        counts["outlier_removal"] = len(points)
        logger.info(f"After outlier removal: {len(points)} points")

    if config.smooth and len(points):
        points = smooth_surface(points, config.smoothing_radius, config.smoothing_min_neighbors)
        logger.info(f"Smoothed {len(points)} points (radius {config.smoothing_radius})")

    return points, counts


class PreprocessStep(BaseStep[PreprocessInput, PreprocessOutput, PreprocessConfig]):
    name: ClassVar[str] = "s01_preprocess"
    input_type: ClassVar = PreprocessInput
    output_type: ClassVar = PreprocessOutput
    config_type: ClassVar = PreprocessConfig

    def validate_inputs(self, inputs: PreprocessInput) -> bool:
        return inputs.points_path.exists()

    def run(self, inputs: PreprocessInput) -> PreprocessOutput:
        output_dir = self.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        points = np.load(str(inputs.points_path))
        filtered, counts = preprocess_points(points, self.config)
        if len(filtered) == 0:
            raise RuntimeError("No points remaining after preprocessing. Check crop ranges or voxel limits.")

        filtered_path = save_points(filtered, output_dir / "filtered_points.npy")
        write_json({"frame_id": inputs.frame_id, "counts": counts}, output_dir / "filter_stats.json")

        return PreprocessOutput(
            filtered_points_path=filtered_path,
            num_input_points=len(points),
            num_filtered_points=len(filtered),
            frame_id=inputs.frame_id,
        )
