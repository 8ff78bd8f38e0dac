"""Logging setup for docsite: console/file handlers and build warning tallies."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

_LOGGER_NAME = "docsite"

_CONSOLE_FORMAT = "[docsite] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``docsite`` hierarchy, e.g. ``docsite.fetch``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console output (and optionally a file sink) to the docsite logger.

    Calling this again replaces the handlers installed by a previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        if not isinstance(handler, WarningCounter):
            logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        # The file always gets debug detail; the console follows --verbose.
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)

    return logger


class WarningCounter(logging.Handler):
    """Counts warning-or-worse records per component logger."""

    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.by_logger: Dict[str, int] = {}

    def emit(self, record: logging.LogRecord) -> None:
        component = record.name[len(_LOGGER_NAME) + 1 :] or _LOGGER_NAME
        self.by_logger[component] = self.by_logger.get(component, 0) + 1

    @property
    def total(self) -> int:
        return sum(self.by_logger.values())


@contextmanager
def count_warnings() -> Iterator[WarningCounter]:
    """Tally warnings logged under ``docsite`` while the block runs."""
    logger = logging.getLogger(_LOGGER_NAME)
    counter = WarningCounter()
    logger.addHandler(counter)
    try:
        yield counter
    finally:
        logger.removeHandler(counter)


__all__ = ["WarningCounter", "configure_logging", "count_warnings", "get_logger"]
