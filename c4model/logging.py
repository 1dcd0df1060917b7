"""Logger hierarchy shared by the analysis stages."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "c4model"
_CONSOLE_FORMAT = "[%(scope)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _ScopeFormatter(logging.Formatter):
    """Prints the stage (``usage``, ``program``...) that emitted a record."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = f"{_LOGGER_NAME}."
        record.scope = record.name[len(prefix):] if record.name.startswith(prefix) else record.name
        return super().format(record)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the logger of one analysis stage under the c4model hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send c4model records to stderr, tagged with their stage, and optionally to a file."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(_ScopeFormatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)

    return logger


__all__ = ["configure_logging", "get_logger"]
