"""Configuration for Step 03: Per-cluster plane extraction."""

from typing import Literal

from pydantic import BaseModel, Field

from ._extractor import ExtractionParams


class PlaneExtractionConfig(BaseModel):
    max_planes_per_cluster: int = Field(2, ge=0, description="Plane budget per cluster")
    max_iterations: int = Field(10, ge=0, description="Fit/remove rounds per cluster")
    distance_threshold: float = Field(0.03, gt=0, description="RANSAC inlier distance (meters)")
    min_inliers: int = Field(1, ge=1, description="Minimum inlier points per plane")
    ransac_iterations: int = Field(1000, ge=1, description="RANSAC trials per plane")
    optimize_coefficients: bool = Field(True, description="Least-squares refit of RANSAC winners")

    # Consolidation
    angle_tolerance: float = Field(0.1, gt=0, description="Max normal angle (radians) to treat fits as one plane")
    offset_tolerance: float | None = Field(
        None, gt=0, description="Max offset difference; default 5 x distance_threshold"
    )
    remaining_ratio: float = Field(0.0, ge=0, le=1, description="Stop when this share of a cluster remains")
    sort_by_offset: bool = Field(False, description="Order each cluster's planes by offset")

    # Labelling
    up_axis: Literal["x", "y", "z"] = Field("z", description="Vertical axis of the sensor frame")
    step_angle_threshold: float = Field(30.0, gt=0, lt=90, description="Max tilt (degrees) of a step plane")

    # Execution
    seed: int | None = Field(0, description="RANSAC root seed (None = nondeterministic)")
    workers: int = Field(1, ge=1, description="Clusters decomposed in parallel")

    def extraction_params(self) -> ExtractionParams:
        return ExtractionParams(
            distance_threshold=self.distance_threshold,
            max_iterations=self.max_iterations,
            max_planes=self.max_planes_per_cluster,
            min_inliers=self.min_inliers,
            ransac_trials=self.ransac_iterations,
            angle_tolerance=self.angle_tolerance,
            offset_tolerance=self.offset_tolerance,
            remaining_ratio=self.remaining_ratio,
            optimize_coefficients=self.optimize_coefficients,
            sort_by_offset=self.sort_by_offset,
        )
