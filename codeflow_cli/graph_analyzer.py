"""Graph algorithms over flow graphs and unit import graphs."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .config import FlowConfig
from .models import NODE_ENDPOINT, FlowEdge, FlowGraph, FlowNode, FlowStats

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


def adjacency_from_edges(edges: Iterable[FlowEdge]) -> Dict[str, List[str]]:
    """Outgoing neighbor lists, in edge order."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
    return adjacency


def find_entry_points(nodes: Sequence[FlowNode], pattern: Optional[str] = None) -> List[str]:
    """Endpoint nodes, else nodes whose owner unit contains *pattern*, else none."""
    entry_points = [n.node_id for n in nodes if n.kind == NODE_ENDPOINT]
    if not entry_points and pattern:
        entry_points = [n.node_id for n in nodes if pattern in n.owner_unit]
    return entry_points


def find_cycles(order: Sequence[str], adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """Depth-first cycle search with white/gray/black coloring.

    One search starts from every still-white node in *order*; neighbors are
    followed in adjacency order and neighbors outside *order* are ignored.
    A back edge to a gray node records the current path from that node on.
    Cycles are reported as found, without rotation or de-duplication.

    The walk keeps its own stack of neighbor iterators, so long import
    chains cannot hit the interpreter recursion limit.
    """
    color: Dict[str, int] = {node: _WHITE for node in order}
    cycles: List[List[str]] = []

    for start in order:
        if color[start] != _WHITE:
            continue
        color[start] = _GRAY
        path = [start]
        stack = [(start, iter(adjacency.get(start, ())))]

        while stack:
            node, neighbors = stack[-1]
            descended = False
            for nxt in neighbors:
                state = color.get(nxt)
                if state == _GRAY:
                    cycles.append(path[path.index(nxt):])
                elif state == _WHITE:
                    color[nxt] = _GRAY
                    path.append(nxt)
                    stack.append((nxt, iter(adjacency.get(nxt, ()))))
                    descended = True
                    break
            if not descended:
                stack.pop()
                path.pop()
                color[node] = _BLACK

    return cycles


def compute_max_depth(
    entry_points: Sequence[str],
    adjacency: Dict[str, List[str]],
    max_depth: int,
) -> int:
    """Deepest reach from any entry point, clamped to *max_depth*.

    Each branch carries its own visited set, so a node shared by two
    branches is explored under both. Recursion is bounded by *max_depth*.
    """
    if not entry_points:
        return 0

    def dfs(node: str, depth: int, visited: FrozenSet[str]) -> int:
        if node in visited or depth >= max_depth:
            return depth
        visited = visited | {node}
        deepest = depth
        for nxt in adjacency.get(node, ()):
            deepest = max(deepest, dfs(nxt, depth + 1, visited))
            if deepest >= max_depth:
                break
        return deepest

    deepest = 0
    for entry in entry_points:
        deepest = max(deepest, dfs(entry, 1, frozenset()))
        if deepest >= max_depth:
            break
    return min(deepest, max_depth)


def analyze_flow(
    nodes: List[FlowNode],
    edges: List[FlowEdge],
    config: Optional[FlowConfig] = None,
) -> FlowGraph:
    """Entry points, cycles and statistics for an already-capped node/edge set."""
    config = config or FlowConfig()
    entry_points = find_entry_points(nodes, config.entry_point_pattern)
    adjacency = adjacency_from_edges(edges)

    cycles: List[List[str]] = []
    if config.enable_circular_detection:
        cycles = find_cycles([n.node_id for n in nodes], adjacency)

    depth = compute_max_depth(entry_points, adjacency, config.max_depth)
    logger.debug(
        "Analyzed flow graph: %d nodes, %d edges, %d entry points, %d cycles, depth %d",
        len(nodes), len(edges), len(entry_points), len(cycles), depth,
    )
    return FlowGraph(
        nodes=nodes,
        edges=edges,
        entry_point_ids=entry_points,
        cycles=cycles,
        stats=FlowStats(node_count=len(nodes), edge_count=len(edges), max_depth=depth),
    )
