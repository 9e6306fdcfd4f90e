"""Configuration for Step 00: Load one range-sensor frame."""

from pydantic import BaseModel, Field


class LoadScanConfig(BaseModel):
    frame_id: str = Field("map", description="Reference frame tag carried with the scan")
    drop_non_finite: bool = Field(
        False, description="Drop NaN/inf points instead of rejecting the frame"
    )
