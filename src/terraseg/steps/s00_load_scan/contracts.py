"""I/O contracts for Step 00: Load one range-sensor frame."""

from pathlib import Path

from pydantic import BaseModel, Field


class LoadScanInput(BaseModel):
    scan_path: Path = Field(..., description="Point file (.npy, .xyz/.txt/.csv, .ply, .pcd)")


class LoadScanOutput(BaseModel):
    points_path: Path = Field(..., description="Path to validated raw_points.npy")
    metadata_path: Path = Field(..., description="Path to scan metadata.json")
    num_points: int = Field(..., description="Points in the validated frame")
    frame_id: str = Field("map", description="Reference frame tag")
