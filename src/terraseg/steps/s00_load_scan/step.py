"""Step 00: Load a range frame, reject malformed input, hand it to the pipeline."""

from __future__ import annotations

import logging
from typing import ClassVar

import numpy as np

from terraseg.core.step_base import BaseStep
from terraseg.utils.io import SUPPORTED_SUFFIXES, load_points, save_points, validate_points, write_json
from .config import LoadScanConfig
from .contracts import LoadScanInput, LoadScanOutput

logger = logging.getLogger(__name__)


class LoadScanStep(BaseStep[LoadScanInput, LoadScanOutput, LoadScanConfig]):
    """Ingestion boundary: everything after this step may assume finite (N, 3) points."""

    name: ClassVar[str] = "s00_load_scan"
    input_type: ClassVar = LoadScanInput
    output_type: ClassVar = LoadScanOutput
    config_type: ClassVar = LoadScanConfig

    def validate_inputs(self, inputs: LoadScanInput) -> bool:
        if not inputs.scan_path.exists():
            logger.error(f"Scan file not found: {inputs.scan_path}")
            return False
        if inputs.scan_path.suffix.lower() not in SUPPORTED_SUFFIXES:
            logger.error(f"Unsupported scan format: {inputs.scan_path.suffix}")
            return False
        return True

    def run(self, inputs: LoadScanInput) -> LoadScanOutput:
        output_dir = self.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        raw = load_points(inputs.scan_path)
        points = validate_points(raw, drop_non_finite=self.config.drop_non_finite)
        logger.info(f"Raw frame '{self.config.frame_id}': {len(points)} points")

        points_path = save_points(points, output_dir / "raw_points.npy")
        bbox_min = points.min(axis=0)
        bbox_max = points.max(axis=0)
        metadata_path = write_json(
            {
                "source": str(inputs.scan_path),
                "frame_id": self.config.frame_id,
                "num_points": len(points),
                "num_dropped": int(len(raw) - len(points)),
                "bbox_min": bbox_min.tolist(),
                "bbox_max": bbox_max.tolist(),
                "centroid": np.mean(points, axis=0).tolist(),
            },
            output_dir / "metadata.json",
        )

        return LoadScanOutput(
            points_path=points_path,
            metadata_path=metadata_path,
            num_points=len(points),
            frame_id=self.config.frame_id,
        )
