"""Tests for c4model.logging."""

from __future__ import annotations

from pathlib import Path

import pytest

from c4model.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_handlers():
    yield
    logger = get_logger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_console_lines_carry_stage_name(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging()

    get_logger("usage").info("Found %d usage evidence items", 3)
    get_logger("usage").debug("hidden")

    err = capsys.readouterr().err
    assert "[usage] INFO Found 3 usage evidence items" in err
    assert "hidden" not in err


def test_verbose_log_file_keeps_full_logger_name(tmp_path: Path) -> None:
    log_file = tmp_path / "c4model.log"
    logger = configure_logging(verbose=True, log_file=log_file)

    get_logger("program").debug("Indexed %d modules", 2)
    for handler in logger.handlers:
        handler.flush()

    assert "DEBUG c4model.program: Indexed 2 modules" in log_file.read_text(encoding="utf-8")
    assert len(logger.handlers) == 2
