"""Report export helpers for markdown, JSON and simple standalone HTML outputs."""

from __future__ import annotations

import html
import json
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Dict

from .errors import ConfigurationError
from .models import ReportArtifact


def render_markdown_document(artifact: ReportArtifact) -> str:
    doc = artifact.rendered_text.rstrip("\n") + "\n"
    if artifact.diagram_text:
        doc += "\n## Flow Diagram\n\n```mermaid\n" + artifact.diagram_text.rstrip("\n") + "\n```\n"
    return doc


def render_json_document(artifact: ReportArtifact) -> str:
    payload = asdict(artifact)
    payload["generated_at"] = artifact.generated_at.isoformat()
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def render_html_document(artifact: ReportArtifact) -> str:
    """Standalone HTML page with the report text and the Mermaid diagram."""
    stats = artifact.statistics
    rows = "\n".join(
        f"      <tr><td>{html.escape(label)}</td><td>{value}</td></tr>"
        for label, value in (
            ("Total Files", stats.total_files),
            ("Total Functions", stats.total_functions),
            ("Total Endpoints", stats.total_endpoints),
            ("Total Nodes", stats.total_nodes),
            ("Total Edges", stats.total_edges),
            ("Max Depth", stats.max_depth),
            ("Circular Dependencies", stats.circular_dependencies),
        )
    )
    issues = "\n".join(
        f'      <li class="{html.escape(i.severity)}"><b>{html.escape(i.issue_type)}</b>: '
        f"{html.escape(i.message)}</li>"
        for i in artifact.issues
    ) or "      <li>No issues detected.</li>"
    diagram = ""
    if artifact.diagram_text:
        diagram = (
            '  <div class="panel">\n    <h2>Flow Diagram</h2>\n'
            f'    <pre class="mermaid">{html.escape(artifact.diagram_text)}</pre>\n  </div>\n'
        )

    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>CodeFlow Analysis Report</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    .panel {{ border: 1px solid #ddd; border-radius: 8px; padding: 10px; margin-bottom: 18px; }}
    table {{ border-collapse: collapse; }}
    td {{ border: 1px solid #ddd; padding: 4px 10px; }}
    li.warning {{ color: #b36b00; }}
    li.error {{ color: #b00020; }}
  </style>
</head>
<body>
  <h1>Analysis Report</h1>
  <p>Generated at: {html.escape(artifact.generated_at.isoformat())}</p>
  <div class="panel">
    <h2>Statistics</h2>
    <table>
{rows}
    </table>
  </div>
  <div class="panel">
    <h2>Detected Issues</h2>
    <ul>
{issues}
    </ul>
  </div>
  <div class="panel">
    <h2>Report</h2>
    <pre>{html.escape(artifact.rendered_text)}</pre>
  </div>
{diagram}</body>
</html>
"""


RENDERERS: Dict[str, Callable[[ReportArtifact], str]] = {
    "markdown": render_markdown_document,
    "json": render_json_document,
    "html": render_html_document,
}


def render_artifact(artifact: ReportArtifact, output_format: str = "markdown") -> str:
    renderer = RENDERERS.get(output_format)
    if renderer is None:
        raise ConfigurationError([f"Unknown output format {output_format!r}"])
    return renderer(artifact)


def export_report(artifact: ReportArtifact, output_file: Path, output_format: str = "markdown") -> Path:
    """Write *artifact* to *output_file*; a directory receives ``artifact.filename``."""
    if output_file.is_dir():
        output_file = output_file / artifact.filename
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_artifact(artifact, output_format), encoding="utf-8")
    return output_file
