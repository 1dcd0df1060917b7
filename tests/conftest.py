from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.program_builder import ProgramBuilder


@pytest.fixture
def program_builder(tmp_path: Path) -> ProgramBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProgramBuilder(tmp_path)
