"""Tree-sitter syntax-tree capability for TypeScript and JavaScript units.

Tree-sitter produces a concrete syntax tree that preserves every token and
recovers from broken input, so a unit with syntax errors still yields a
partial tree plus a list of diagnostics instead of an exception.
"""

from __future__ import annotations

import importlib
import logging
import posixpath
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser as TSParser

from .errors import UnsupportedLanguageError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File kind <-> extension <-> grammar mapping
# ---------------------------------------------------------------------------
FILE_KINDS: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
}

# File kind -> grammar used to parse it
KIND_GRAMMAR: Dict[str, str] = {
    "typescript": "typescript",
    "tsx": "tsx",
    "javascript": "javascript",
    "jsx": "javascript",
}

# Diagnostics reported per unit before the rest are summarized
MAX_DIAGNOSTICS = 50


def detect_file_kind(unit_id: str) -> Optional[str]:
    """Return the file kind for *unit_id* or None when it is not a script."""
    _, ext = posixpath.splitext(unit_id.lower())
    return FILE_KINDS.get(ext)


@dataclass
class ParsedTree:
    """A parsed unit: root node, source bytes and parse diagnostics."""

    unit_id: str
    file_kind: str
    root: Any
    source: bytes
    diagnostics: List[str] = field(default_factory=list)


class TreeSitterParser:
    """Error-tolerant parser built on per-language tree-sitter grammars."""

    # Grammar name -> (module, function returning the Language capsule)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
        "javascript": ("tree_sitter_javascript", "language"),
    }

    def __init__(self, grammars: Optional[List[str]] = None) -> None:
        self._parsers: Dict[str, TSParser] = {}
        self._requested = grammars or list(self._GRAMMAR_MODULES)
        self._init_parsers()

    def _init_parsers(self) -> None:
        for grammar in self._requested:
            spec = self._GRAMMAR_MODULES.get(grammar)
            if spec is None:
                logger.warning("No grammar module mapped for '%s'", grammar)
                continue
            mod_name, func_name = spec
            try:
                mod = importlib.import_module(mod_name)
                ts_lang = Language(getattr(mod, func_name)())
                self._parsers[grammar] = TSParser(ts_lang)
                logger.debug("Loaded tree-sitter grammar for %s", grammar)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for '%s'. Install with: pip install %s",
                    mod_name, grammar, mod_name.replace("_", "-"),
                )

    def supports_kind(self, file_kind: str) -> bool:
        return KIND_GRAMMAR.get(file_kind) in self._parsers

    def parse(self, text: str, unit_id: str) -> ParsedTree:
        """Parse *text* as the file kind implied by *unit_id*.

        Raises:
            UnsupportedLanguageError: the unit is not a script or its grammar
                is not installed.
        """
        file_kind = detect_file_kind(unit_id)
        if file_kind is None:
            raise UnsupportedLanguageError(unit_id, posixpath.splitext(unit_id)[1] or "unknown")
        grammar = KIND_GRAMMAR[file_kind]
        parser = self._parsers.get(grammar)
        if parser is None:
            raise UnsupportedLanguageError(unit_id, grammar)

        source = text.encode("utf-8")
        tree = parser.parse(source)
        root = tree.root_node
        diagnostics = collect_diagnostics(root) if root.has_error else []
        return ParsedTree(
            unit_id=unit_id,
            file_kind=file_kind,
            root=root,
            source=source,
            diagnostics=diagnostics,
        )


@lru_cache(maxsize=1)
def default_parser() -> TreeSitterParser:
    """Shared parser with every available grammar loaded."""
    return TreeSitterParser()


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

def collect_diagnostics(root: Any) -> List[str]:
    """Describe every ERROR and MISSING node, descending only into damaged subtrees."""
    messages: List[str] = []
    total = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            total += 1
            if len(messages) < MAX_DIAGNOSTICS:
                messages.append(f"Missing '{node.type}' at {_point(node)}")
            continue
        if node.type == "ERROR":
            total += 1
            if len(messages) < MAX_DIAGNOSTICS:
                snippet = node_text(node).strip().splitlines()
                near = f" near '{snippet[0][:40]}'" if snippet else ""
                messages.append(f"Syntax error at {_point(node)}{near}")
        stack.extend(child for child in reversed(node.children) if child.has_error)
    if total > len(messages):
        messages.append(f"... {total - len(messages)} more syntax errors")
    return messages


def _point(node: Any) -> str:
    row, column = node.start_point
    return f"{row + 1}:{column + 1}"


def node_text(node: Any) -> str:
    """Decode a node's source text."""
    raw = node.text
    return raw.decode("utf-8", errors="replace") if raw is not None else ""
