"""Pipeline coordinating extraction, aggregation, graph building, analysis and reporting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .aggregator import aggregate_project, extract_units
from .config import FlowConfig
from .flow_builder import build_flow_graph
from .graph_analyzer import analyze_flow
from .models import FlowGraph, ProjectFacts, ReportArtifact, SourceUnit, UnitFacts
from .parser import TreeSitterParser
from .report import synthesize_report

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    project: ProjectFacts
    graph: FlowGraph
    report: ReportArtifact


class FlowPipeline:
    """Runs every stage in order over one batch of source units.

    The configuration is validated on construction, so an invalid option
    raises ConfigurationError before any stage runs.
    """

    def __init__(self, config: Optional[FlowConfig] = None, parser: Optional[TreeSitterParser] = None):
        self.config = (config or FlowConfig()).validate()
        self.parser = parser

    def extract(self, units: Iterable[SourceUnit]) -> List[UnitFacts]:
        return extract_units(units, self.parser)

    def aggregate(self, unit_facts: Iterable[UnitFacts]) -> ProjectFacts:
        return aggregate_project(unit_facts)

    def analyze(self, project: ProjectFacts) -> FlowGraph:
        nodes, edges = build_flow_graph(project, self.config.max_nodes)
        return analyze_flow(nodes, edges, self.config)

    def report(
        self,
        project: ProjectFacts,
        graph: FlowGraph,
        generated_at: Optional[datetime] = None,
        source_label: str = "",
    ) -> ReportArtifact:
        return synthesize_report(project, graph, self.config, generated_at, source_label)

    def run(
        self,
        units: Iterable[SourceUnit],
        generated_at: Optional[datetime] = None,
        source_label: str = "",
    ) -> PipelineResult:
        project = self.aggregate(self.extract(units))
        graph = self.analyze(project)
        artifact = self.report(project, graph, generated_at, source_label)
        logger.info(
            "Analyzed %d units: %d nodes, %d edges, %d cycles, %d issues",
            project.counts.units, graph.stats.node_count, graph.stats.edge_count,
            len(graph.cycles), len(artifact.issues),
        )
        return PipelineResult(project=project, graph=graph, report=artifact)


def run_pipeline(
    units: Iterable[SourceUnit],
    config: Optional[FlowConfig] = None,
    generated_at: Optional[datetime] = None,
    source_label: str = "",
) -> PipelineResult:
    return FlowPipeline(config).run(units, generated_at, source_label)
