"""Tests for c4model.sources."""

from __future__ import annotations

from pathlib import Path

from c4model.sources import compile_pattern, resolve_sources


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_resolve_sources_applies_includes_and_negations(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "app.py")
    _write(tmp_path / "src" / "orders" / "service.py")
    _write(tmp_path / "src" / "orders" / "test_service.py")
    _write(tmp_path / "src" / "README.md")
    _write(tmp_path / "scripts" / "tool.py")
    _write(tmp_path / ".venv" / "lib" / "site.py")

    selected = resolve_sources(tmp_path, ["./src/**/*.py", "!**/test_*.py"])

    relative = [path.relative_to(tmp_path.resolve()).as_posix() for path in selected]
    assert relative == ["src/app.py", "src/orders/service.py"]


def test_default_pattern_skips_tool_directories(tmp_path: Path) -> None:
    _write(tmp_path / "main.py")
    _write(tmp_path / "__pycache__" / "main.py")
    _write(tmp_path / "node_modules" / "pkg" / "setup.py")

    selected = resolve_sources(tmp_path, ["**/*.py"])

    assert [path.name for path in selected] == ["main.py"]
    assert selected[0].parent == tmp_path.resolve()


def test_compile_pattern_wildcards_do_not_cross_directories() -> None:
    single = compile_pattern("src/*.py")
    recursive = compile_pattern("src/**/*.py")

    assert single.match("src/app.py")
    assert not single.match("src/orders/app.py")
    assert recursive.match("src/app.py")
    assert recursive.match("src/orders/deep/app.py")
    assert compile_pattern("mod?.py").match("mod1.py")
    assert not compile_pattern("mod?.py").match("mod12.py")
