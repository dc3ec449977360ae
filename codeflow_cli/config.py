"""Configuration paths and run options for CodeFlow analysis."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError

BASE_DIR = Path(os.environ.get("CODEFLOW_HOME", str(Path.home() / ".codeflow"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

SUPPORTED_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"}
OUTPUT_FORMATS = ("markdown", "json", "html")

# Recursive depth search is bounded by max_depth, keep it far below the
# interpreter recursion limit.
MAX_DEPTH_CEILING = 256

# Files larger than this are skipped by the filesystem source provider.
MAX_FILE_SIZE = 5 * 1024 * 1024


@dataclass(frozen=True)
class FlowConfig:
    """Read-only options for one analysis run."""

    max_depth: int = 10
    max_nodes: int = 1000
    enable_circular_detection: bool = True
    entry_point_pattern: Optional[str] = None
    include_mermaid_diagram: bool = True
    output_format: str = "markdown"
    # Depth above which a depth-exceeded issue is reported; max_depth when unset.
    depth_threshold: Optional[int] = None

    def validate(self) -> "FlowConfig":
        """Raise a single ConfigurationError listing every invalid option."""
        problems: List[str] = []
        if not _is_int(self.max_depth) or self.max_depth < 1:
            problems.append(f"max_depth must be a positive integer (got {self.max_depth!r})")
        elif self.max_depth > MAX_DEPTH_CEILING:
            problems.append(f"max_depth must not exceed {MAX_DEPTH_CEILING} (got {self.max_depth})")
        if not _is_int(self.max_nodes) or self.max_nodes < 1:
            problems.append(f"max_nodes must be a positive integer (got {self.max_nodes!r})")
        if self.depth_threshold is not None and (
            not _is_int(self.depth_threshold) or self.depth_threshold < 0
        ):
            problems.append(
                f"depth_threshold must be a non-negative integer (got {self.depth_threshold!r})"
            )
        if self.output_format not in OUTPUT_FORMATS:
            problems.append(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)} (got {self.output_format!r})"
            )
        if self.entry_point_pattern is not None and not isinstance(self.entry_point_pattern, str):
            problems.append("entry_point_pattern must be a string")
        if problems:
            raise ConfigurationError(problems)
        return self

    @property
    def effective_depth_threshold(self) -> int:
        return self.max_depth if self.depth_threshold is None else self.depth_threshold

    def merged(self, **overrides: Any) -> "FlowConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FlowConfig":
        """Build a config from a TOML section, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
