"""Typer-based CLI for CodeFlow source-flow analysis."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .aggregator import aggregate_project, extract_units
from .config import FlowConfig
from .config_manager import clear_flow_config, load_flow_config, save_flow_config
from .errors import ConfigurationError
from .extractor import extract_unit
from .graph_export import export_report, render_artifact
from .pipeline import FlowPipeline
from .sources import load_source_units, read_source_unit

console = Console()

app = typer.Typer(
    help="🔀 CodeFlow CLI — structural flow analysis for TypeScript and JavaScript projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — persistent analysis defaults.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"CodeFlow CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """CodeFlow CLI: imports, declarations and call flow from source, with issue reports."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _effective_config(**overrides) -> FlowConfig:
    try:
        return load_flow_config().merged(**overrides).validate()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc))
    except TypeError as exc:
        raise typer.BadParameter(f"Invalid flow configuration: {exc}")


@app.command("analyze")
def analyze(
    source_path: Path = typer.Argument(..., exists=True, help="Project directory or single file."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Depth limit for traversal."),
    max_nodes: Optional[int] = typer.Option(None, "--max-nodes", help="Node cap for the flow graph."),
    entry_point_pattern: Optional[str] = typer.Option(
        None, "--entry", "-e", help="Owner-unit substring selecting entry points."
    ),
    circular: Optional[bool] = typer.Option(
        None, "--circular/--no-circular", help="Enable circular dependency detection."
    ),
    mermaid: Optional[bool] = typer.Option(None, "--mermaid/--no-mermaid", help="Include a Mermaid diagram."),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="markdown, json or html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to a file or directory."),
):
    """Analyze a project and print (or write) the flow report."""
    cfg = _effective_config(
        max_depth=max_depth,
        max_nodes=max_nodes,
        entry_point_pattern=entry_point_pattern,
        enable_circular_detection=circular,
        include_mermaid_diagram=mermaid,
        output_format=output_format,
    )
    pipeline = FlowPipeline(cfg)
    units = load_source_units(source_path)
    result = pipeline.run(units, source_label=str(source_path))

    if output is None:
        typer.echo(render_artifact(result.report, cfg.output_format))
        return

    written = export_report(result.report, output, cfg.output_format)
    stats = result.report.statistics
    table = Table(title="Analysis summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for label, value in (
        ("Files", stats.total_files),
        ("Functions", stats.total_functions),
        ("Nodes", stats.total_nodes),
        ("Edges", stats.total_edges),
        ("Max depth", stats.max_depth),
        ("Cycles", stats.circular_dependencies),
        ("Issues", len(result.report.issues)),
    ):
        table.add_row(label, str(value))
    console.print(table)
    typer.echo(f"Report written to {written}")


@app.command("facts")
def facts(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to extract."),
):
    """Print the structural facts of one file as JSON."""
    unit = read_source_unit(file_path.resolve(), file_path.resolve().parent)
    if unit is None:
        raise typer.BadParameter(f"Could not read '{file_path}'.")
    typer.echo(json.dumps(asdict(extract_unit(unit)), indent=2))


@app.command("graph")
def graph(
    source_path: Path = typer.Argument(..., exists=True, help="Project directory or single file."),
    as_json: bool = typer.Option(False, "--json", help="Print the import graph as JSON."),
):
    """Show the resolved unit import graph and its cycles."""
    project = aggregate_project(extract_units(load_source_units(source_path)))

    if as_json:
        payload = {"graph": project.graph, "cycles": project.circular_dependencies}
        typer.echo(json.dumps(payload, indent=2))
        return

    if not project.units:
        typer.echo("No source units found.")
        raise typer.Exit(code=0)

    table = Table(title=f"Import graph ({project.counts.units} units)", show_header=True)
    table.add_column("Unit", style="cyan")
    table.add_column("Imports")
    for unit_id, targets in project.graph.items():
        table.add_row(unit_id, ", ".join(targets) or "-")
    console.print(table)

    if project.circular_dependencies:
        console.print("[yellow]Circular dependencies:[/yellow]")
        for cycle in project.circular_dependencies:
            console.print(f"  {' → '.join(cycle + cycle[:1])}")
    else:
        console.print("[green]No circular dependencies.[/green]")


# ===================================================================
# Configuration commands
# ===================================================================

@config_app.command("show")
def config_show():
    """Show the effective analysis defaults."""
    cfg = load_flow_config()
    table = Table(title="Flow configuration", show_header=True)
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    for key, value in cfg.to_dict().items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


@config_app.command("set")
def config_set(
    max_depth: Optional[int] = typer.Option(None, "--max-depth"),
    max_nodes: Optional[int] = typer.Option(None, "--max-nodes"),
    entry_point_pattern: Optional[str] = typer.Option(None, "--entry"),
    circular: Optional[bool] = typer.Option(None, "--circular/--no-circular"),
    mermaid: Optional[bool] = typer.Option(None, "--mermaid/--no-mermaid"),
    output_format: Optional[str] = typer.Option(None, "--format"),
    depth_threshold: Optional[int] = typer.Option(None, "--depth-threshold"),
):
    """Persist analysis defaults to the config file."""
    values = {
        "max_depth": max_depth,
        "max_nodes": max_nodes,
        "entry_point_pattern": entry_point_pattern,
        "enable_circular_detection": circular,
        "include_mermaid_diagram": mermaid,
        "output_format": output_format,
        "depth_threshold": depth_threshold,
    }
    values = {k: v for k, v in values.items() if v is not None}
    if not values:
        raise typer.BadParameter("Nothing to set. Pass at least one option.")

    _effective_config(**values)
    if not save_flow_config(**values):
        typer.echo("Failed to save configuration.")
        raise typer.Exit(code=1)
    typer.echo(f"Saved: {', '.join(f'{k}={v}' for k, v in values.items())}")


@config_app.command("reset")
def config_reset():
    """Remove persisted defaults."""
    if not clear_flow_config():
        typer.echo("Failed to reset configuration.")
        raise typer.Exit(code=1)
    typer.echo("Flow configuration reset to defaults.")
