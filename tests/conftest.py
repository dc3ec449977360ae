"""Pytest configuration and fixtures for CodeFlow CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Sequence

import pytest

from codeflow_cli.models import (
    BINDING_NAMED,
    DECL_FUNCTION,
    Declaration,
    ImportFact,
    Position,
    SourceUnit,
    UnitFacts,
    UnitMetadata,
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample TypeScript project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def temp_config_home(temp_dir: Path, monkeypatch) -> Path:
    """Point config persistence at a temporary home directory."""
    home = temp_dir / "codeflow_home"
    # config_manager imports the paths at module load
    monkeypatch.setattr("codeflow_cli.config.BASE_DIR", home)
    monkeypatch.setattr("codeflow_cli.config.CONFIG_FILE", home / "config.toml")
    monkeypatch.setattr("codeflow_cli.config_manager.BASE_DIR", home)
    monkeypatch.setattr("codeflow_cli.config_manager.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def ts_parser():
    """Shared tree-sitter parser; skips when the grammars are not installed."""
    pytest.importorskip("tree_sitter_typescript")
    pytest.importorskip("tree_sitter_javascript")
    from codeflow_cli.parser import default_parser

    return default_parser()


@pytest.fixture
def extract(ts_parser) -> Callable[[str, str], UnitFacts]:
    """Extract facts from inline source text."""
    from codeflow_cli.extractor import extract_unit

    def _extract(text: str, unit_id: str = "sample.ts") -> UnitFacts:
        return extract_unit(SourceUnit(unit_id=unit_id, text=text), ts_parser)

    return _extract


def _position(line: int) -> Position:
    return Position(line, 1, line, 10)


@pytest.fixture
def make_unit() -> Callable[..., UnitFacts]:
    """Build UnitFacts by hand, without parsing."""

    def _make(
        unit_id: str,
        imports: Sequence[str] = (),
        functions: Sequence[str] = (),
    ) -> UnitFacts:
        import_facts: List[ImportFact] = [
            ImportFact(
                module_ref=ref,
                binding_form=BINDING_NAMED,
                binding_names=["x"],
                is_external=not ref.startswith((".", "/")),
                is_deferred=False,
                position=_position(i + 1),
            )
            for i, ref in enumerate(imports)
        ]
        declarations = [
            Declaration(name=name, kind=DECL_FUNCTION, position=_position(100 + i))
            for i, name in enumerate(functions)
        ]
        return UnitFacts(
            unit_id=unit_id,
            metadata=UnitMetadata(file_kind="typescript", line_count=1),
            imports=import_facts,
            declarations=declarations,
        )

    return _make


@pytest.fixture
def sample_ts_code() -> str:
    """Sample TypeScript code for testing the extractor."""
    return '''import axios from 'axios';
import { format as fmt, parse } from './utils';
import * as path from 'path';
import './polyfills';

const client = axios.create({ baseURL: '/api' });

/**
 * Fetch one order.
 */
export async function getOrder<T>(id: string, verbose?: boolean, retries: number = 3): Promise<T> {
  try {
    const res = await client.get('/orders');
    return res.data;
  } catch (err) {
    throw err;
  }
}

export const saveOrder = async (order: Order) => {
  return fetch('/orders', { method: 'POST', body: JSON.stringify(order) });
};

class OrderRepository extends Repository implements Store, Disposable {
  async findAll(...filters: string[]) {
    return prisma.order.findMany({ where: filters });
  }

  dispose(): void {}
}

export default OrderRepository;
'''
