"""terraseg core: pipeline runner, base step, shared contracts, errors."""

from .step_base import BaseStep
from .contracts import PipelineConfig, StepEntry, StepMeta, AxisRange, LeafSize
from .errors import (
    TerrasegError,
    MalformedInput,
    InsufficientPoints,
    NoModelFound,
    DegenerateGeometry,
    PartitionError,
)
from .pipeline_runner import run_pipeline, load_pipeline_config
from .logging import setup_logging

__all__ = [
    "BaseStep",
    "PipelineConfig",
    "StepEntry",
    "StepMeta",
    "AxisRange",
    "LeafSize",
    "TerrasegError",
    "MalformedInput",
    "InsufficientPoints",
    "NoModelFound",
    "DegenerateGeometry",
    "PartitionError",
    "run_pipeline",
    "load_pipeline_config",
    "setup_logging",
]
