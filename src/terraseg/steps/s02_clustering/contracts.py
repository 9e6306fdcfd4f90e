"""I/O contracts for Step 02: Spatial clustering."""

from pathlib import Path

from pydantic import BaseModel, Field


class ClusteringInput(BaseModel):
    filtered_points_path: Path = Field(..., description="Path to filtered_points.npy")
    frame_id: str = Field("map", description="Reference frame tag")


class ClusterSummary(BaseModel):
    index: int
    num_points: int
    centroid: list[float] = Field(..., min_length=3, max_length=3)
    bbox_min: list[float] = Field(..., min_length=3, max_length=3)
    bbox_max: list[float] = Field(..., min_length=3, max_length=3)


class ClusteringOutput(BaseModel):
    clusters_path: Path = Field(..., description="Path to clusters.npz (cluster_0000, ...)")
    summary_path: Path = Field(..., description="Path to clusters.json")
    num_clusters: int
    num_clustered_points: int = 0
    frame_id: str = "map"
