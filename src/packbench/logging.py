"""Logging setup for packbench.

Console messages go to stderr so the comparison report on stdout stays
machine-readable in CI logs.  An optional log file always receives DEBUG
records, including the full argument list and temporary paths of each run.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "packbench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the ``packbench`` logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        verbose: Console at DEBUG.
        quiet: Console at WARNING. Ignored if *verbose* is True.
        log_file: If provided, also log everything at DEBUG to this path.
    """
    logger = reset_logging()
    logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_console_level(verbose, quiet))
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def reset_logging() -> logging.Logger:
    """Close and remove every handler on the ``packbench`` logger."""
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger ``packbench.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
