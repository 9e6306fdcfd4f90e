"""I/O contracts for Step 01: Preprocessing filters."""

from pathlib import Path

from pydantic import BaseModel, Field


class PreprocessInput(BaseModel):
    points_path: Path = Field(..., description="Path to raw_points.npy")
    frame_id: str = Field("map", description="Reference frame tag")


class PreprocessOutput(BaseModel):
    filtered_points_path: Path = Field(..., description="Path to filtered_points.npy")
    num_input_points: int
    num_filtered_points: int
    frame_id: str = "map"
