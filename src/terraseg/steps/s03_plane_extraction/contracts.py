"""I/O contracts for Step 03: Per-cluster plane extraction."""

from pathlib import Path

from pydantic import BaseModel, Field


class PlaneExtractionInput(BaseModel):
    clusters_path: Path = Field(..., description="Path to clusters.npz")
    frame_id: str = Field("map", description="Reference frame tag")


class DetectedPlane(BaseModel):
    id: int = Field(..., description="Plane index within its cluster")
    cluster_index: int
    normal: list[float] = Field(..., min_length=3, max_length=3)
    offset: float
    label: str = Field(..., description="step|riser")
    num_inliers: int
    centroid: list[float] = Field(..., min_length=3, max_length=3)
    variance: float = Field(0.0, description="Mean squared inlier distance to the plane")


class DetectedCluster(BaseModel):
    index: int
    num_points: int
    num_residual_points: int
    planes: list[DetectedPlane] = Field(default_factory=list)


class SceneSummary(BaseModel):
    frame_id: str = "map"
    clusters: list[DetectedCluster] = Field(default_factory=list)


class PlaneExtractionOutput(BaseModel):
    scene_file: Path = Field(..., description="Path to scene.json")
    planes_file: Path = Field(..., description="Path to plane_points.npz (inliers + residuals)")
    num_clusters: int
    num_planes: int = Field(..., description="Total planes over all clusters")
    num_steps: int = Field(0)
    num_risers: int = Field(0)
    num_residual_points: int = Field(0)
