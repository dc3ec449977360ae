"""Project-level aggregation of unit facts into an import graph and counts."""

from __future__ import annotations

import logging
import posixpath
from typing import AbstractSet, Dict, Iterable, List, Optional

from .extractor import extract_unit
from .graph_analyzer import find_cycles
from .models import ProjectCounts, ProjectFacts, ProjectGraph, SourceUnit, UnitFacts
from .parser import TreeSitterParser, default_parser

logger = logging.getLogger(__name__)

SCRIPT_SUFFIXES = (".ts", ".tsx", ".js", ".jsx")
DEFAULT_SUFFIX = ".ts"
INDEX_STEM = "index"


def resolve_module_ref(module_ref: str) -> str:
    """Literal unit candidate for a module reference.

    Relative references lose one leading ``./`` (``../`` is kept) and get a
    ``.ts`` suffix unless they already end in a script extension. Rooted
    references (``/src/x``) are taken from the project root, so they lose
    the leading ``/`` and follow the same suffix rule. Anything else is
    returned unchanged.
    """
    if _is_rooted(module_ref):
        candidate = module_ref.lstrip("/")
    elif _is_relative(module_ref):
        candidate = module_ref[2:] if module_ref.startswith("./") else module_ref
    else:
        return module_ref
    if not candidate.endswith(SCRIPT_SUFFIXES):
        candidate += DEFAULT_SUFFIX
    return candidate


def resolve_import_target(
    module_ref: str,
    importer: str,
    known_units: Optional[AbstractSet[str]] = None,
) -> str:
    """Resolve *module_ref* as imported from *importer*.

    The literal candidate wins when it names a known unit. Otherwise the
    reference is joined onto the importer's directory (or the project root
    for rooted references) and tried with each script suffix, then as a
    directory ``index`` file. With no match the literal candidate is
    returned.
    """
    candidate = resolve_module_ref(module_ref)
    if known_units is None or candidate in known_units:
        return candidate
    if _is_rooted(module_ref):
        joined = posixpath.normpath(module_ref.lstrip("/"))
    elif _is_relative(module_ref):
        joined = posixpath.normpath(posixpath.join(posixpath.dirname(importer), module_ref))
    else:
        return candidate

    options = [joined] if joined.endswith(SCRIPT_SUFFIXES) else [joined + s for s in SCRIPT_SUFFIXES]
    options.extend(posixpath.join(joined, INDEX_STEM + s) for s in SCRIPT_SUFFIXES)
    for option in options:
        if option in known_units:
            return option
    return candidate


def unit_dependencies(facts: UnitFacts, known_units: Optional[AbstractSet[str]] = None) -> List[str]:
    """Resolved, de-duplicated local dependencies of one unit, in source order."""
    refs = [imp.module_ref for imp in facts.imports if not imp.is_external and not imp.is_deferred]
    refs.extend(
        exp.source_module_ref
        for exp in facts.exports
        if exp.is_reexport and exp.source_module_ref and _is_local(exp.source_module_ref)
    )
    resolved: List[str] = []
    for ref in refs:
        target = resolve_import_target(ref, facts.unit_id, known_units)
        if target not in resolved:
            resolved.append(target)
    return resolved


def extract_units(
    sources: Iterable[SourceUnit],
    parser: Optional[TreeSitterParser] = None,
) -> List[UnitFacts]:
    """Run the extractor over every source unit, keeping the first of duplicate ids."""
    parser = parser or default_parser()
    seen: Dict[str, UnitFacts] = {}
    for unit in sources:
        if unit.unit_id in seen:
            logger.warning("Duplicate unit id %s ignored", unit.unit_id)
            continue
        seen[unit.unit_id] = extract_unit(unit, parser)
    return list(seen.values())


def aggregate_project(units: Iterable[UnitFacts]) -> ProjectFacts:
    """Build the ProjectGraph, counts and unit-level circular dependencies."""
    unit_list = list(units)
    known = {facts.unit_id for facts in unit_list}

    graph: ProjectGraph = {}
    counts = ProjectCounts(units=len(unit_list))
    for facts in unit_list:
        graph[facts.unit_id] = unit_dependencies(facts, known)
        counts.functions += len(facts.functions)
        counts.classes += len(facts.classes)
        counts.imports += len(facts.imports)
        counts.exports += len(facts.exports)

    cycles = find_cycles(list(graph), graph)
    logger.debug(
        "Aggregated %d units (%d imports, %d unit cycles)",
        counts.units, counts.imports, len(cycles),
    )
    return ProjectFacts(units=unit_list, graph=graph, counts=counts, circular_dependencies=cycles)


def _is_relative(module_ref: str) -> bool:
    return module_ref.startswith(("./", "../"))


def _is_local(module_ref: str) -> bool:
    return module_ref.startswith((".", "/"))


def _is_rooted(module_ref: str) -> bool:
    return module_ref.startswith("/")
