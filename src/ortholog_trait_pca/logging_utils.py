"""Logging setup for an analysis run."""
from __future__ import annotations

import logging
import logging.handlers
import pathlib

from .config import AnalysisConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_FILE_NAME = "analysis.log"

# handlers installed by the last configure_logging call
_installed: list[logging.Handler] = []


def _remove_installed(root: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()


def configure_logging(config: AnalysisConfig) -> pathlib.Path:
    """Route log records to ``analysis.log`` and the console.

    Repeated calls replace, and close, the handlers of the previous call, so a
    process running several analyses writes only to the latest log directory.
    Returns the log file path.
    """

    level = getattr(logging, config.logging.log_level.upper(), logging.INFO)
    log_dir = pathlib.Path(config.logging.log_directory)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    _remove_installed(root)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10_000_000, backupCount=5, encoding="utf-8"
        ),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed.append(handler)
    root.setLevel(level)

    # matplotlib is chatty at DEBUG about font discovery
    logging.getLogger("matplotlib").setLevel(max(level, logging.WARNING))
    return log_file


__all__ = ["configure_logging"]
