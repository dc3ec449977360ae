"""Report synthesis: tree view, issues, statistics, markdown and Mermaid text."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Set

from .config import FlowConfig
from .graph_analyzer import adjacency_from_edges
from .models import (
    ISSUE_CIRCULAR,
    ISSUE_DEPTH,
    ISSUE_ORPHAN,
    NODE_DATA_STORE,
    NODE_ENDPOINT,
    NODE_FUNCTION,
    NODE_KINDS,
    NODE_UNIT,
    SEVERITY_ERROR,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    FlowGraph,
    FlowNode,
    Issue,
    ProjectFacts,
    ReportArtifact,
    ReportStatistics,
    TreeNode,
)

logger = logging.getLogger(__name__)

NODE_ICONS: Dict[str, str] = {
    NODE_UNIT: "📄",
    NODE_FUNCTION: "🔧",
    NODE_ENDPOINT: "🔗",
    NODE_DATA_STORE: "🗃️",
}
DEFAULT_ICON = "📄"

SEVERITY_GLYPHS: Dict[str, str] = {
    SEVERITY_ERROR: "❌",
    SEVERITY_WARNING: "⚠️",
    SEVERITY_INFO: "ℹ️",
}

MERMAID_SHAPES: Dict[str, tuple] = {
    NODE_ENDPOINT: ("[", "]"),
    NODE_FUNCTION: ("(", ")"),
    NODE_DATA_STORE: ("[(", ")]"),
    NODE_UNIT: ("[[", "]]"),
}

FORMAT_EXTENSIONS = {"markdown": "md", "json": "json", "html": "html"}

MAX_LABEL_LENGTH = 50
EMPTY_TREE_TEXT = "No flow detected\n"
EMPTY_DIAGRAM_TEXT = "graph TD\n  A[No nodes to display]"


# ---------------------------------------------------------------------------
# Tree view
# ---------------------------------------------------------------------------

def build_tree(graph: FlowGraph, max_depth: int) -> List[TreeNode]:
    """Roots from entry points, then every node not yet a root, grouped by kind.

    A node is expanded at most once per parent and never twice along one
    ancestor path: a repeat on the path becomes a back-reference leaf.
    Children stop below *max_depth* levels.
    """
    if not graph.nodes:
        return []

    by_id = {n.node_id: n for n in graph.nodes}
    outgoing = adjacency_from_edges(graph.edges)

    def expand(node: FlowNode, level: int, ancestors: FrozenSet[str]) -> TreeNode:
        tree = _tree_node(node, level)
        if level >= max_depth:
            return tree
        seen: Set[str] = set()
        for target in outgoing.get(node.node_id, ()):
            child = by_id.get(target)
            if child is None or target in seen:
                continue
            seen.add(target)
            if target in ancestors:
                back = _tree_node(child, level + 1)
                back.is_back_reference = True
                tree.children.append(back)
            else:
                tree.children.append(expand(child, level + 1, ancestors | {target}))
        return tree

    roots: List[TreeNode] = []
    root_ids: Set[str] = set()
    for entry in graph.entry_point_ids:
        node = by_id.get(entry)
        if node is not None and entry not in root_ids:
            roots.append(expand(node, 0, frozenset({entry})))
            root_ids.add(entry)

    # Nodes reached only as children still get a root of their own.
    known_kinds = set(NODE_KINDS)
    grouped = [n for kind in NODE_KINDS for n in graph.nodes if n.kind == kind]
    grouped.extend(n for n in graph.nodes if n.kind not in known_kinds)
    for node in grouped:
        if node.node_id not in root_ids:
            roots.append(expand(node, 0, frozenset({node.node_id})))
            root_ids.add(node.node_id)
    return roots


def _tree_node(node: FlowNode, level: int) -> TreeNode:
    return TreeNode(
        node_id=node.node_id,
        kind=node.kind,
        label=node.label,
        depth_level=level,
        source_path=node.owner_unit or None,
    )


def render_tree(roots: List[TreeNode]) -> str:
    if not roots:
        return EMPTY_TREE_TEXT
    lines: List[str] = []
    for root in roots:
        lines.append(f"{_icon(root.kind)} {_truncate(root.label)}")
        _render_children(root, "", lines)
    return "\n".join(lines) + "\n"


def _render_children(node: TreeNode, prefix: str, lines: List[str]) -> None:
    for index, child in enumerate(node.children):
        last = index == len(node.children) - 1
        marker = " (circular)" if child.is_back_reference else ""
        lines.append(
            f"{prefix}{'└── ' if last else '├── '}{_icon(child.kind)} {_truncate(child.label)}{marker}"
        )
        _render_children(child, prefix + ("    " if last else "│   "), lines)


def _icon(kind: str) -> str:
    return NODE_ICONS.get(kind, DEFAULT_ICON)


def _truncate(label: str) -> str:
    if len(label) > MAX_LABEL_LENGTH:
        return label[: MAX_LABEL_LENGTH - 3] + "..."
    return label


# ---------------------------------------------------------------------------
# Issues and statistics
# ---------------------------------------------------------------------------

def detect_issues(graph: FlowGraph, depth_threshold: int) -> List[Issue]:
    """Circular dependencies, then orphan nodes, then at most one depth issue."""
    issues: List[Issue] = []

    for index, cycle in enumerate(graph.cycles):
        loop = " → ".join(cycle + cycle[:1])
        issues.append(Issue(
            issue_id=f"circular-{index}",
            issue_type=ISSUE_CIRCULAR,
            severity=SEVERITY_WARNING,
            message=f"Circular dependency detected: {loop}",
            affected_nodes=list(cycle),
            suggestions=[
                "Consider refactoring to break the circular dependency",
                "Extract common functionality into a separate module",
            ],
        ))

    connected: Set[str] = set()
    for edge in graph.edges:
        connected.add(edge.source)
        connected.add(edge.target)
    entry_points = set(graph.entry_point_ids)
    for node in graph.nodes:
        if node.node_id in connected or node.node_id in entry_points:
            continue
        issues.append(Issue(
            issue_id=f"orphan-{node.node_id}",
            issue_type=ISSUE_ORPHAN,
            severity=SEVERITY_INFO,
            message=f"Orphan node detected: {node.label}",
            affected_nodes=[node.node_id],
            suggestions=[
                "Check if this code is still needed",
                "Add proper connections to the flow",
            ],
        ))

    if graph.stats.max_depth > depth_threshold:
        issues.append(Issue(
            issue_id="depth-exceeded",
            issue_type=ISSUE_DEPTH,
            severity=SEVERITY_WARNING,
            message=f"Maximum depth exceeded: {graph.stats.max_depth} > {depth_threshold}",
            suggestions=[
                "Consider increasing maxDepth option",
                "Simplify the call chain",
            ],
        ))
    return issues


def compute_statistics(project: ProjectFacts, graph: FlowGraph) -> ReportStatistics:
    return ReportStatistics(
        total_files=len(project.units),
        total_functions=sum(len(u.functions) for u in project.units),
        total_endpoints=sum(1 for n in graph.nodes if n.kind == NODE_ENDPOINT),
        total_nodes=len(graph.nodes),
        total_edges=len(graph.edges),
        max_depth=graph.stats.max_depth,
        circular_dependencies=len(graph.cycles),
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_markdown(
    tree_text: str,
    statistics: ReportStatistics,
    issues: List[Issue],
    generated_at: datetime,
    source_label: str = "",
) -> str:
    lines = [
        "# Analysis Report",
        "",
        f"Generated at: {generated_at.isoformat()}",
        f"Repository: {source_label}",
        "",
        "## Flow Structure",
        "",
        "```",
        tree_text.rstrip("\n"),
        "```",
        "",
        "## Statistics",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Files | {statistics.total_files} |",
        f"| Total Functions | {statistics.total_functions} |",
        f"| Total Endpoints | {statistics.total_endpoints} |",
        f"| Total Nodes | {statistics.total_nodes} |",
        f"| Total Edges | {statistics.total_edges} |",
        f"| Max Depth | {statistics.max_depth} |",
        f"| Circular Dependencies | {statistics.circular_dependencies} |",
        "",
        "## Detected Issues",
        "",
    ]
    if not issues:
        lines.extend(["No issues detected.", ""])
    for issue in issues:
        glyph = SEVERITY_GLYPHS.get(issue.severity, SEVERITY_GLYPHS[SEVERITY_INFO])
        lines.append(f"{glyph} **{issue.issue_type}**: {issue.message}")
        if issue.suggestions:
            lines.append("Suggestions:")
            lines.extend(f"- {s}" for s in issue.suggestions)
        lines.append("")
    return "\n".join(lines)


def render_mermaid(graph: FlowGraph, max_nodes: int) -> str:
    """Mermaid ``graph TD`` text for the first *max_nodes* nodes."""
    if not graph.nodes:
        return EMPTY_DIAGRAM_TEXT

    nodes = graph.nodes[:max_nodes]
    safe_ids = _mermaid_ids(nodes)
    lines = ["graph TD"]
    for node in nodes:
        opening, closing = MERMAID_SHAPES.get(node.kind, ("[", "]"))
        label = node.label.replace('"', "#quot;")
        lines.append(f'  {safe_ids[node.node_id]}{opening}"{label}"{closing}')
    for edge in graph.edges:
        if edge.source in safe_ids and edge.target in safe_ids:
            lines.append(f"  {safe_ids[edge.source]} --> {safe_ids[edge.target]}")
    return "\n".join(lines) + "\n"


def _mermaid_ids(nodes: List[FlowNode]) -> Dict[str, str]:
    ids: Dict[str, str] = {}
    used: Set[str] = set()
    for index, node in enumerate(nodes):
        safe = re.sub(r"[^0-9A-Za-z]", "_", node.node_id) or "node"
        if safe in used:
            safe = f"{safe}_{index}"
        used.add(safe)
        ids[node.node_id] = safe
    return ids


def report_filename(generated_at: datetime, output_format: str = "markdown") -> str:
    extension = FORMAT_EXTENSIONS.get(output_format, "md")
    return f"analysis-report-{generated_at.strftime('%Y-%m-%d-%H-%M-%S')}.{extension}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def synthesize_report(
    project: ProjectFacts,
    graph: FlowGraph,
    config: Optional[FlowConfig] = None,
    generated_at: Optional[datetime] = None,
    source_label: str = "",
) -> ReportArtifact:
    """Assemble the full report artifact for one analysis run."""
    config = config or FlowConfig()
    generated_at = generated_at or datetime.now()

    roots = build_tree(graph, config.max_depth)
    issues = detect_issues(graph, config.effective_depth_threshold)
    statistics = compute_statistics(project, graph)
    rendered = render_markdown(render_tree(roots), statistics, issues, generated_at, source_label)
    diagram = render_mermaid(graph, config.max_nodes) if config.include_mermaid_diagram else None

    logger.debug("Report synthesized: %d roots, %d issues", len(roots), len(issues))
    return ReportArtifact(
        tree_roots=roots,
        issues=issues,
        statistics=statistics,
        rendered_text=rendered,
        filename=report_filename(generated_at, config.output_format),
        generated_at=generated_at,
        diagram_text=diagram,
    )
