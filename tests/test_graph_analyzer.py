"""Tests for entry points, cycle detection and depth computation."""

from codeflow_cli.config import FlowConfig
from codeflow_cli.graph_analyzer import (
    adjacency_from_edges,
    analyze_flow,
    compute_max_depth,
    find_cycles,
    find_entry_points,
)
from codeflow_cli.models import EDGE_IMPORT, NODE_ENDPOINT, NODE_UNIT, FlowEdge, FlowNode


def _unit(node_id: str) -> FlowNode:
    return FlowNode(node_id=node_id, kind=NODE_UNIT, label=node_id, owner_unit=node_id)


def _edge(source: str, target: str) -> FlowEdge:
    return FlowEdge(edge_id=f"{source}->{target}", source=source, target=target, kind=EDGE_IMPORT)


class TestFindCycles:

    def test_two_node_cycle(self):
        assert find_cycles(["A", "B"], {"A": ["B"], "B": ["A"]}) == [["A", "B"]]

    def test_three_node_cycle(self):
        adjacency = {"B": ["C"], "C": ["D"], "D": ["B"]}

        assert find_cycles(["B", "C", "D"], adjacency) == [["B", "C", "D"]]

    def test_cycle_reported_from_back_edge_target(self):
        adjacency = {"A": ["B"], "B": ["C"], "C": ["B"]}

        assert find_cycles(["A", "B", "C"], adjacency) == [["B", "C"]]

    def test_diamond_has_no_cycle(self):
        adjacency = {"A": ["B", "C"], "B": ["D"], "C": ["D"]}

        assert find_cycles(["A", "B", "C", "D"], adjacency) == []

    def test_self_loop(self):
        assert find_cycles(["A"], {"A": ["A"]}) == [["A"]]

    def test_unknown_neighbors_ignored(self):
        assert find_cycles(["A"], {"A": ["ghost"], "ghost": ["A"]}) == []

    def test_long_chain_does_not_recurse(self):
        n = 5000
        order = [f"n{i}" for i in range(n)]
        adjacency = {order[i]: [order[i + 1]] for i in range(n - 1)}
        adjacency[order[-1]] = [order[0]]

        cycles = find_cycles(order, adjacency)

        assert len(cycles) == 1
        assert len(cycles[0]) == n


class TestMaxDepth:

    def test_no_entry_points(self):
        assert compute_max_depth([], {"A": ["B"]}, 10) == 0

    def test_single_entry_without_edges(self):
        assert compute_max_depth(["A"], {}, 10) == 1

    def test_chain_is_clamped(self):
        n, k = 8, 4
        adjacency = {f"u{i}": [f"u{i + 1}"] for i in range(n - 1)}

        assert compute_max_depth(["u0"], adjacency, k) <= k
        assert compute_max_depth(["u0"], adjacency, 20) == n

    def test_cycle_terminates(self):
        assert compute_max_depth(["A"], {"A": ["B"], "B": ["A"]}, 10) == 3


class TestEntryPoints:

    def test_endpoints_win(self):
        nodes = [
            _unit("routes.ts"),
            FlowNode(node_id="routes.ts::GET /users", kind=NODE_ENDPOINT, label="GET /users", owner_unit="routes.ts"),
        ]

        assert find_entry_points(nodes, "routes") == ["routes.ts::GET /users"]

    def test_pattern_fallback(self):
        nodes = [_unit("src/api/main.ts"), _unit("src/util.ts")]

        assert find_entry_points(nodes, "api") == ["src/api/main.ts"]
        assert find_entry_points(nodes) == []


class TestAnalyzeFlow:

    def test_empty(self):
        graph = analyze_flow([], [], FlowConfig())

        assert graph.cycles == []
        assert graph.entry_point_ids == []
        assert (graph.stats.node_count, graph.stats.edge_count, graph.stats.max_depth) == (0, 0, 0)

    def test_statistics_and_cycles(self):
        nodes = [_unit("a.ts"), _unit("b.ts"), _unit("c.ts")]
        edges = [_edge("a.ts", "b.ts"), _edge("b.ts", "a.ts"), _edge("b.ts", "c.ts")]

        graph = analyze_flow(nodes, edges, FlowConfig(entry_point_pattern="a.ts"))

        assert graph.entry_point_ids == ["a.ts"]
        assert graph.cycles == [["a.ts", "b.ts"]]
        assert graph.stats.node_count == 3
        assert graph.stats.edge_count == 3
        assert graph.stats.max_depth == 3

    def test_cycle_detection_disabled(self):
        nodes = [_unit("a.ts"), _unit("b.ts")]
        edges = [_edge("a.ts", "b.ts"), _edge("b.ts", "a.ts")]

        graph = analyze_flow(nodes, edges, FlowConfig(enable_circular_detection=False))

        assert graph.cycles == []

    def test_adjacency_keeps_edge_order(self):
        edges = [_edge("a", "c"), _edge("a", "b"), _edge("b", "c")]

        assert adjacency_from_edges(edges) == {"a": ["c", "b"], "b": ["c"]}
