"""Configuration for Step 02: Spatial clustering."""

from typing import Literal

from pydantic import BaseModel, Field

from terraseg.core.contracts import LeafSize


class ClusteringConfig(BaseModel):
    method: Literal["euclidean", "none"] = Field(
        "euclidean", description="'none' passes the whole cloud on as a single cluster"
    )
    cluster_tolerance: float = Field(0.09, gt=0, description="Max neighbour gap within a cluster (meters)")

    # Size bounds: absolute sizes override ratios of the input size
    min_cluster_size: int | None = Field(None, ge=1, description="Minimum points per cluster")
    max_cluster_size: int | None = Field(None, ge=1, description="Maximum points per cluster")
    min_cluster_ratio: float = Field(0.1, ge=0, le=1, description="Min cluster size as fraction of input")
    max_cluster_ratio: float = Field(0.5, ge=0, le=1, description="Max cluster size as fraction of input")

    # Normal compatibility
    use_normals: bool = Field(False, description="Also require compatible normals to join points")
    normal_k: int = Field(20, ge=3, description="Neighbours for PCA normal estimation")
    normal_angle_threshold: float = Field(30.0, gt=0, lt=90, description="Max normal angle (degrees)")

    # Per-cluster downsampling before plane extraction
    downsample_clusters: bool = Field(False, description="Voxel-downsample every cluster")
    cluster_leaf: LeafSize = Field(
        default_factory=lambda: LeafSize(x=0.16, y=0.40, z=0.16),
        description="Voxel edge lengths for per-cluster downsampling (meters)",
    )
