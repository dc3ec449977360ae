"""Build the typed flow graph (nodes and edges) from aggregated project facts."""

from __future__ import annotations

import logging
from typing import List, Tuple

from .models import (
    EDGE_CALL,
    EDGE_IMPORT,
    NODE_ENDPOINT,
    NODE_FUNCTION,
    NODE_UNIT,
    FlowEdge,
    FlowNode,
    ProjectFacts,
    UnitFacts,
)

logger = logging.getLogger(__name__)

# Units whose id contains one of these get synthetic endpoint nodes
ROUTING_MARKERS = ("router", "routes")
ENDPOINT_VERBS = ("GET", "POST", "PUT", "DELETE")
PLACEHOLDER_RESOURCE = "/users"


def function_node_id(unit_id: str, index: int, name: str) -> str:
    return f"{unit_id}::{name}#{index}"


def endpoint_node_id(unit_id: str, verb: str) -> str:
    return f"{unit_id}::{verb} {PLACEHOLDER_RESOURCE}"


def is_routing_unit(unit_id: str) -> bool:
    lowered = unit_id.lower()
    return any(marker in lowered for marker in ROUTING_MARKERS)


def build_nodes(project: ProjectFacts) -> List[FlowNode]:
    """Unit node, then its function nodes, then its endpoints, unit by unit."""
    nodes: List[FlowNode] = []
    for facts in project.units:
        nodes.append(FlowNode(
            node_id=facts.unit_id,
            kind=NODE_UNIT,
            label=facts.unit_id,
            owner_unit=facts.unit_id,
            attributes={
                "file_kind": facts.metadata.file_kind,
                "line_count": facts.metadata.line_count,
            },
        ))
        for index, decl in enumerate(facts.functions):
            nodes.append(FlowNode(
                node_id=function_node_id(facts.unit_id, index, decl.name),
                kind=NODE_FUNCTION,
                label=decl.name,
                owner_unit=facts.unit_id,
                position=decl.position,
                attributes={
                    "declaration_kind": decl.kind,
                    "is_async": decl.is_async,
                    "is_exported": decl.is_exported,
                    "parameters": [p.name for p in decl.parameters],
                    "return_type": decl.return_type_text,
                },
            ))
        if is_routing_unit(facts.unit_id):
            for verb in ENDPOINT_VERBS:
                nodes.append(FlowNode(
                    node_id=endpoint_node_id(facts.unit_id, verb),
                    kind=NODE_ENDPOINT,
                    label=f"{verb} {PLACEHOLDER_RESOURCE}",
                    owner_unit=facts.unit_id,
                    attributes={"method": verb, "path": PLACEHOLDER_RESOURCE},
                ))
    return nodes


def build_edges(project: ProjectFacts) -> List[FlowEdge]:
    """Import edges from the ProjectGraph and adjacent-declaration call edges."""
    edges: List[FlowEdge] = []
    for facts in project.units:
        for index, target in enumerate(project.graph.get(facts.unit_id, [])):
            edges.append(FlowEdge(
                edge_id=f"import:{facts.unit_id}:{index}",
                source=facts.unit_id,
                target=target,
                kind=EDGE_IMPORT,
            ))
        edges.extend(_call_edges(facts))
    return edges


def _call_edges(facts: UnitFacts) -> List[FlowEdge]:
    # Declaration adjacency stands in for real call sites.
    functions = facts.functions
    return [
        FlowEdge(
            edge_id=f"call:{facts.unit_id}:{index}",
            source=function_node_id(facts.unit_id, index, functions[index].name),
            target=function_node_id(facts.unit_id, index + 1, functions[index + 1].name),
            kind=EDGE_CALL,
        )
        for index in range(len(functions) - 1)
    ]


def cap_graph(
    nodes: List[FlowNode],
    edges: List[FlowEdge],
    max_nodes: int,
) -> Tuple[List[FlowNode], List[FlowEdge]]:
    """Keep the first *max_nodes* nodes and the edges between survivors."""
    kept = nodes[:max_nodes]
    if len(kept) < len(nodes):
        logger.info("Flow graph capped at %d of %d nodes", len(kept), len(nodes))
    ids = {n.node_id for n in kept}
    return kept, [e for e in edges if e.source in ids and e.target in ids]


def build_flow_graph(project: ProjectFacts, max_nodes: int = 1000) -> Tuple[List[FlowNode], List[FlowEdge]]:
    """Nodes and edges for *project*, capped to *max_nodes*."""
    return cap_graph(build_nodes(project), build_edges(project), max_nodes)
