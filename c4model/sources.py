"""Source file selection for a container's ``source`` patterns."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, List, Pattern, Sequence, Tuple

from .logging import get_logger

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
}

logger = get_logger("sources")


def compile_pattern(pattern: str) -> Pattern[str]:
    """Translate a glob into a regex over POSIX relative paths.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross ``/``.
    """
    index = 0
    parts: List[str] = []
    while index < len(pattern):
        if pattern.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("**", index):
            parts.append(".*")
            index += 2
        elif pattern[index] == "*":
            parts.append("[^/]*")
            index += 1
        elif pattern[index] == "?":
            parts.append("[^/]")
            index += 1
        else:
            parts.append(re.escape(pattern[index]))
            index += 1
    return re.compile("^" + "".join(parts) + "$")


def _split_patterns(patterns: Sequence[str]) -> Tuple[List[Pattern[str]], List[Pattern[str]]]:
    includes: List[Pattern[str]] = []
    excludes: List[Pattern[str]] = []
    for raw in patterns:
        pattern = raw.strip().replace("\\", "/")
        negate = pattern.startswith("!")
        if negate:
            pattern = pattern[1:]
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if not pattern:
            continue
        (excludes if negate else includes).append(compile_pattern(pattern))
    return includes, excludes


def resolve_sources(root: Path, patterns: Sequence[str]) -> List[Path]:
    """Return the Python files under ``root`` selected by ``patterns``, sorted."""
    root = Path(root).resolve()
    includes, excludes = _split_patterns(patterns)
    selected: List[Path] = []
    for rel_path in _walk(root):
        if not any(regex.match(rel_path) for regex in includes):
            continue
        if any(regex.match(rel_path) for regex in excludes):
            continue
        selected.append(root / rel_path)
    logger.debug("Selected %d source files under %s", len(selected), root)
    return selected


def _walk(root: Path) -> Iterable[str]:
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        rel_dir = Path(current).relative_to(root).as_posix()
        for filename in sorted(filenames):
            if not filename.endswith(".py"):
                continue
            yield filename if rel_dir == "." else f"{rel_dir}/{filename}"


__all__ = ["compile_pattern", "resolve_sources"]
