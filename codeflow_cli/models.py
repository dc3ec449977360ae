"""Core data models shared by extraction, graph building, analysis and reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Import binding forms
BINDING_DEFAULT = "default"
BINDING_NAMED = "named"
BINDING_NAMESPACE = "namespace"
BINDING_SIDE_EFFECT = "side-effect"

# Export forms
EXPORT_DEFAULT = "default"
EXPORT_NAMED = "named"
EXPORT_REEXPORT_ALL = "reexport-all"

# Declaration kinds
DECL_FUNCTION = "function"
DECL_METHOD = "method"
DECL_CLASS = "class"
CALLABLE_KINDS = (DECL_FUNCTION, DECL_METHOD)

# Recognized call categories
CALL_HTTP = "http"
CALL_DATA_ACCESS = "data-access"

# Flow node / edge kinds
NODE_UNIT = "unit"
NODE_FUNCTION = "function"
NODE_ENDPOINT = "endpoint"
NODE_DATA_STORE = "data-store"
NODE_KINDS = (NODE_ENDPOINT, NODE_FUNCTION, NODE_UNIT, NODE_DATA_STORE)

EDGE_IMPORT = "import"
EDGE_CALL = "call"

# Issue types and severities
ISSUE_CIRCULAR = "circular-dependency"
ISSUE_ORPHAN = "orphan-node"
ISSUE_DEPTH = "depth-exceeded"

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"

# Adjacency list keyed by unit id
ProjectGraph = Dict[str, List[str]]


@dataclass(frozen=True)
class Position:
    """1-based start/end location inside a unit."""

    line: int
    column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class SourceUnit:
    unit_id: str
    text: str


# ---------------------------------------------------------------------------
# Unit facts
# ---------------------------------------------------------------------------

@dataclass
class ImportFact:
    module_ref: str
    binding_form: str
    binding_names: List[str]
    is_external: bool
    is_deferred: bool
    position: Position


@dataclass
class ExportFact:
    form: str
    names: List[str]
    is_reexport: bool
    position: Position
    source_module_ref: Optional[str] = None


@dataclass
class Parameter:
    name: str
    type_text: str = "any"
    is_optional: bool = False
    default_value_text: Optional[str] = None


@dataclass
class Declaration:
    name: str
    kind: str
    position: Position
    is_async: bool = False
    is_exported: bool = False
    is_generic: bool = False
    parameters: List[Parameter] = field(default_factory=list)
    return_type_text: str = "void"
    doc_text: Optional[str] = None
    # Classes only
    super_class: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)


@dataclass
class RecognizedCall:
    category: str
    library: str
    position: Position
    has_surrounding_failure_handling: bool = False
    verb: Optional[str] = None
    target: Optional[str] = None


@dataclass
class UnitMetadata:
    file_kind: str
    has_jsx: bool = False
    has_async_code: bool = False
    has_parsing_errors: bool = False
    line_count: int = 0
    character_count: int = 0


@dataclass
class UnitFacts:
    """Everything the extractor recovers from one unit."""

    unit_id: str
    metadata: UnitMetadata
    imports: List[ImportFact] = field(default_factory=list)
    exports: List[ExportFact] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)
    calls: List[RecognizedCall] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def dependencies(self) -> List[str]:
        return [imp.module_ref for imp in self.imports]

    @property
    def functions(self) -> List[Declaration]:
        return [d for d in self.declarations if d.kind in CALLABLE_KINDS]

    @property
    def classes(self) -> List[Declaration]:
        return [d for d in self.declarations if d.kind == DECL_CLASS]


@dataclass
class ProjectCounts:
    units: int = 0
    functions: int = 0
    classes: int = 0
    imports: int = 0
    exports: int = 0


@dataclass
class ProjectFacts:
    """Aggregated facts for every unit plus the resolved import graph."""

    units: List[UnitFacts] = field(default_factory=list)
    graph: ProjectGraph = field(default_factory=dict)
    counts: ProjectCounts = field(default_factory=ProjectCounts)
    circular_dependencies: List[List[str]] = field(default_factory=list)

    def unit(self, unit_id: str) -> Optional[UnitFacts]:
        for facts in self.units:
            if facts.unit_id == unit_id:
                return facts
        return None


# ---------------------------------------------------------------------------
# Flow graph
# ---------------------------------------------------------------------------

@dataclass
class FlowNode:
    node_id: str
    kind: str
    label: str
    owner_unit: str
    position: Optional[Position] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowEdge:
    edge_id: str
    source: str
    target: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowStats:
    node_count: int = 0
    edge_count: int = 0
    max_depth: int = 0


@dataclass
class FlowGraph:
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)
    entry_point_ids: List[str] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)
    stats: FlowStats = field(default_factory=FlowStats)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class TreeNode:
    node_id: str
    kind: str
    label: str
    depth_level: int
    source_path: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)
    # Set when the node already appears on its own ancestor path.
    is_back_reference: bool = False


@dataclass
class Issue:
    issue_id: str
    issue_type: str
    severity: str
    message: str
    affected_nodes: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class ReportStatistics:
    total_files: int = 0
    total_functions: int = 0
    total_endpoints: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    max_depth: int = 0
    circular_dependencies: int = 0


@dataclass
class ReportArtifact:
    tree_roots: List[TreeNode]
    issues: List[Issue]
    statistics: ReportStatistics
    rendered_text: str
    filename: str
    generated_at: datetime
    diagram_text: Optional[str] = None
