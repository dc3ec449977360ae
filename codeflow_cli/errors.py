"""Exception hierarchy for the flow-analysis pipeline."""

from __future__ import annotations

from typing import List


class CodeFlowError(Exception):
    """Base class for every error raised by codeflow_cli."""


class ConfigurationError(CodeFlowError, ValueError):
    """Raised once, before any stage runs, when a FlowConfig is invalid."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid flow configuration: " + "; ".join(self.problems))


class UnsupportedLanguageError(CodeFlowError):
    """No tree-sitter grammar is available for a unit's file kind."""

    def __init__(self, unit_id: str, language: str):
        self.unit_id = unit_id
        self.language = language
        super().__init__(f"No grammar loaded for '{language}' (unit {unit_id})")
