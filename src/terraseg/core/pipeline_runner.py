"""Pipeline orchestrator: reads pipeline.yaml and executes steps in order."""

from __future__ import annotations

import importlib
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

from .contracts import PipelineConfig, StepEntry, StepMeta

logger = logging.getLogger(__name__)


def load_pipeline_config(config_path: Path) -> PipelineConfig:
    """Load and validate pipeline.yaml."""
    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return PipelineConfig(**raw)


def load_step_config(config_path: Path, config_class: type[BaseModel]) -> BaseModel:
    """Load a step-specific YAML config into its Pydantic model."""
    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return config_class(**raw)


def resolve_config_file(entry: StepEntry, pipeline_path: Path | None = None) -> Path:
    """Locate a step config: as given (cwd-relative), else next to pipeline.yaml."""
    path = Path(entry.config_file)
    if path.is_absolute() or path.exists() or pipeline_path is None:
        return path
    candidate = Path(pipeline_path).parent / path
    if candidate.exists():
        return candidate
    # configs/steps/x.yaml referenced from configs/pipeline.yaml
    return Path(pipeline_path).parent.parent / path


def import_step_class(module_path: str):
    """Dynamically import a step class from its module path.

    Expects module_path like 'terraseg.steps.s02_clustering'
    and looks for a class ending in 'Step' in that module's step.py.
    """
    step_module = importlib.import_module(f"{module_path}.step")
    for attr_name in dir(step_module):
        attr = getattr(step_module, attr_name)
        if (
            isinstance(attr, type)
            and hasattr(attr, "run")
            and attr_name.endswith("Step")
            and attr_name != "BaseStep"
        ):
            return attr
    raise ImportError(f"No Step class found in {module_path}.step")


def run_pipeline(config_path: Path) -> dict[str, BaseModel]:
    """Execute the full pipeline from a config file.

    Returns the output model of every executed step, keyed by step name.
    Timing and resolved parameters of the run go to processed/run_meta.json.
    """
    from terraseg.utils.io import write_json

    pipeline_cfg = load_pipeline_config(config_path)
    data_root = pipeline_cfg.data_root
    results: dict[str, BaseModel] = {}
    metas: list[StepMeta] = []

    enabled_steps = [s for s in pipeline_cfg.steps if s.enabled]
    logger.info(f"Pipeline '{pipeline_cfg.project_name}' with {len(enabled_steps)} steps")

    for entry in enabled_steps:
        logger.info(f"--- Step: {entry.name} ---")

        step_cls = import_step_class(entry.module)
        step_config = load_step_config(
            resolve_config_file(entry, config_path), step_cls.config_type
        )
        step_instance = step_cls(config=step_config, data_root=data_root)

        # Build input from previous step outputs, then literal inputs
        input_data = {}
        for dep in entry.depends_on:
            if dep in results:
                input_data.update(results[dep].model_dump())
            else:
                logger.warning(f"Step '{entry.name}' depends on '{dep}' which has not run")
        input_data.update(entry.inputs)

        step_input = step_cls.input_type(**input_data) if input_data else step_cls.input_type()
        output = step_instance.execute(step_input)
        results[entry.name] = output
        if step_instance.meta is not None:
            metas.append(step_instance.meta)

    write_json(
        {"project_name": pipeline_cfg.project_name, "steps": [m.model_dump() for m in metas]},
        Path(data_root) / "processed" / "run_meta.json",
    )
    logger.info("Pipeline complete.")
    return results
