"""Configuration for Step 01: Preprocessing filters."""

from typing import Literal

from pydantic import BaseModel, Field

from terraseg.core.contracts import AxisRange, LeafSize


class PreprocessConfig(BaseModel):
    passthrough: list[AxisRange] = Field(
        default_factory=lambda: [AxisRange(axis="y", min=-0.7, max=0.7)],
        description="Axis crops applied in order (inclusive ranges, meters)",
    )

    # Voxel grid
    voxel_downsample: bool = Field(True, description="Apply voxel-grid downsampling")
    voxel_leaf: LeafSize = Field(
        default_factory=lambda: LeafSize(x=0.08, y=0.08, z=0.08),
        description="Voxel edge lengths (meters)",
    )
    voxel_filter_axis: Literal["x", "y", "z"] | None = Field(
        "z", description="Axis limited during downsampling (None = no limit)"
    )
    voxel_filter_limits: tuple[float, float] = Field(
        (-1.0, 2.5), description="Kept range on voxel_filter_axis"
    )

    # Statistical outlier removal
    remove_outliers: bool = Field(False, description="Apply statistical outlier removal")
    outlier_nb_neighbors: int = Field(20, ge=1, description="Neighbours for outlier statistics")
    outlier_std_ratio: float = Field(2.0, gt=0, description="Std-dev multiplier for outlier cutoff")

    # Surface smoothing
    smooth: bool = Field(False, description="Project points onto local least-squares planes")
    smoothing_radius: float = Field(0.1, gt=0, description="Neighbourhood radius for smoothing (meters)")
    smoothing_min_neighbors: int = Field(5, ge=3, description="Minimum neighbours to smooth a point")
