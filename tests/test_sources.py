"""Tests for the filesystem source provider."""

from pathlib import Path

from codeflow_cli.sources import load_source_units


def _write(root: Path, rel: str, text: str = "export {};\n") -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_collects_supported_files_sorted(temp_dir: Path):
    _write(temp_dir, "src/b.ts")
    _write(temp_dir, "src/a.tsx")
    _write(temp_dir, "lib/c.js")
    _write(temp_dir, "README.md", "# hi\n")

    units = load_source_units(temp_dir)

    assert [u.unit_id for u in units] == ["lib/c.js", "src/a.tsx", "src/b.ts"]
    assert units[0].text == "export {};\n"


def test_skips_dependency_and_build_dirs(temp_dir: Path):
    _write(temp_dir, "src/app.ts")
    _write(temp_dir, "node_modules/pkg/index.js")
    _write(temp_dir, "dist/app.js")

    assert [u.unit_id for u in load_source_units(temp_dir)] == ["src/app.ts"]


def test_skips_large_files(temp_dir: Path):
    _write(temp_dir, "small.ts")
    _write(temp_dir, "big.ts", "x" * 200)

    units = load_source_units(temp_dir, max_size=100)

    assert [u.unit_id for u in units] == ["small.ts"]


def test_single_file(temp_dir: Path):
    _write(temp_dir, "only.ts")

    units = load_source_units(temp_dir / "only.ts")

    assert [u.unit_id for u in units] == ["only.ts"]


def test_empty_directory(temp_dir: Path):
    assert load_source_units(temp_dir) == []
