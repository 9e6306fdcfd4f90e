"""CLI entry point for the terraseg pipeline.

Usage:
    terraseg run                          # Run full pipeline
    terraseg run-step s02_clustering -i '{"filtered_points_path": "..."}'
    terraseg info                         # Show pipeline info
    terraseg decompose scan.npy -o scene.json
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from terraseg.core.logging import setup_logging

app = typer.Typer(name="terraseg", help="Stair and terrain plane decomposition for range scans")
console = Console()

DEFAULT_CONFIG = Path("configs/pipeline.yaml")


@app.command()
def run(
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    log_level: str = typer.Option("INFO", help="Logging level"),
    log_file: Path = typer.Option(None, help="Also write logs to this file"),
) -> None:
    """Run the full pipeline."""
    setup_logging(log_level, log_file)
    from terraseg.core.pipeline_runner import run_pipeline

    run_pipeline(config)


@app.command()
def run_step(
    step_name: str = typer.Argument(..., help="Step name (e.g. s02_clustering)"),
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    input_json: str = typer.Option(None, "--input", "-i", help="Input as JSON string"),
) -> None:
    """Run a single pipeline step."""
    import json

    setup_logging()
    from terraseg.core.pipeline_runner import (
        import_step_class,
        load_pipeline_config,
        load_step_config,
        resolve_config_file,
    )

    pipeline_cfg = load_pipeline_config(config)
    entry = next((s for s in pipeline_cfg.steps if s.name == step_name), None)
    if entry is None:
        console.print(f"[red]Step '{step_name}' not found in pipeline config[/red]")
        raise typer.Exit(1)

    step_cls = import_step_class(entry.module)
    step_config = load_step_config(resolve_config_file(entry, config), step_cls.config_type)
    step_instance = step_cls(config=step_config, data_root=pipeline_cfg.data_root)

    if input_json:
        input_data = json.loads(input_json)
    else:
        input_data = dict(entry.inputs)
        schema = step_cls.input_type.model_json_schema()
        missing = [f for f in schema.get("required", []) if f not in input_data]
        if missing:
            console.print(f"[yellow]Step '{step_name}' requires input fields: {missing}[/yellow]")
            console.print("[yellow]Use --input/-i with JSON string, e.g.:[/yellow]")
            console.print(f'  terraseg run-step {step_name} -i \'{{"field": "value"}}\'')
            raise typer.Exit(1)

    console.print(f"[green]Running step: {step_name}[/green]")
    step_input = step_cls.input_type(**input_data)
    output = step_instance.execute(step_input)
    console.print(f"[green]Done. Output:[/green] {output.model_dump_json(indent=2)}")


@app.command()
def info(config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path")) -> None:
    """Show pipeline steps and their status."""
    from terraseg.core.pipeline_runner import load_pipeline_config

    pipeline_cfg = load_pipeline_config(config)
    table = Table(title=f"Pipeline: {pipeline_cfg.project_name}")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Module", style="green")
    table.add_column("Enabled", style="yellow")
    table.add_column("Depends On", style="dim")

    for i, step in enumerate(pipeline_cfg.steps, 1):
        table.add_row(
            str(i),
            step.name,
            step.module,
            "Y" if step.enabled else "N",
            ", ".join(step.depends_on) if step.depends_on else "-",
        )
    console.print(table)


@app.command()
def decompose(
    scan: Path = typer.Argument(..., help="Point file (.npy, .xyz, .ply, .pcd)"),
    output: Path = typer.Option(Path("scene.json"), "--output", "-o", help="Scene JSON path"),
    preprocess_config: Path = typer.Option(None, help="Step 01 YAML config"),
    clustering_config: Path = typer.Option(None, help="Step 02 YAML config"),
    extraction_config: Path = typer.Option(None, help="Step 03 YAML config"),
    frame_id: str = typer.Option("map", help="Reference frame tag"),
) -> None:
    """Decompose one scan into clusters and planes without a data root."""
    setup_logging()
    from terraseg.core.pipeline_runner import load_step_config
    from terraseg.steps.s01_preprocess.config import PreprocessConfig
    from terraseg.steps.s01_preprocess.step import preprocess_points
    from terraseg.steps.s02_clustering.config import ClusteringConfig
    from terraseg.steps.s02_clustering.step import cluster_points
    from terraseg.steps.s03_plane_extraction.config import PlaneExtractionConfig
    from terraseg.steps.s03_plane_extraction.step import decompose_scene, summarize_scene
    from terraseg.utils.io import load_points, validate_points, write_json

    def _load(path: Path | None, cls):
        return load_step_config(path, cls) if path else cls()

    points = validate_points(load_points(scan))
    filtered, _ = preprocess_points(points, _load(preprocess_config, PreprocessConfig))
    clusters = cluster_points(filtered, _load(clustering_config, ClusteringConfig))
    scene = decompose_scene(clusters, _load(extraction_config, PlaneExtractionConfig), frame_id)
    write_json(summarize_scene(scene).model_dump(), output)

    table = Table(title=f"Scene: {scan.name}")
    table.add_column("Cluster", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Planes", style="green")
    table.add_column("Residual", justify="right", style="dim")
    for record in scene.clusters:
        planes = ", ".join(f"{p.label}({p.num_inliers})" for p in record.planes) or "-"
        table.add_row(
            str(record.index), str(record.num_points), planes, str(len(record.residual_indices))
        )
    console.print(table)
    console.print(f"[green]Wrote {output}[/green]")


if __name__ == "__main__":
    app()
