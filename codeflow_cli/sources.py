"""Filesystem source provider: turn a directory tree into SourceUnits."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .config import MAX_FILE_SIZE, SUPPORTED_EXTENSIONS
from .models import SourceUnit

logger = logging.getLogger(__name__)

SKIP_DIRS: Set[str] = {
    "node_modules", ".git", "build", "dist", "coverage", "out",
    ".next", ".nuxt", ".turbo", ".cache", ".venv", "venv",
    "__pycache__", ".codeflow",
}


def iter_source_paths(root: Path) -> Iterator[Path]:
    """Supported script files under *root*, sorted, outside skipped directories."""
    for file_path in sorted(root.rglob("*")):
        if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS or not file_path.is_file():
            continue
        relative = file_path.relative_to(root)
        if any(part in SKIP_DIRS for part in relative.parts[:-1]):
            continue
        yield file_path


def read_source_unit(file_path: Path, root: Path, max_size: int = MAX_FILE_SIZE) -> Optional[SourceUnit]:
    """Read one file as a SourceUnit; None when it is too large or unreadable."""
    unit_id = file_path.relative_to(root).as_posix()
    try:
        size = file_path.stat().st_size
        if size > max_size:
            logger.warning("Skipping %s: %d bytes exceeds limit of %d", unit_id, size, max_size)
            return None
        text = file_path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        logger.warning("Failed to read %s: %s", unit_id, exc)
        return None
    return SourceUnit(unit_id=unit_id, text=text)


def load_source_units(root: Path, max_size: int = MAX_FILE_SIZE) -> List[SourceUnit]:
    """All readable script units under *root* (a single file yields one unit)."""
    root = root.resolve()
    if root.is_file():
        unit = read_source_unit(root, root.parent, max_size)
        return [unit] if unit is not None else []

    units: List[SourceUnit] = []
    for file_path in iter_source_paths(root):
        unit = read_source_unit(file_path, root, max_size)
        if unit is not None:
            units.append(unit)
    logger.debug("Loaded %d source units from %s", len(units), root)
    return units
