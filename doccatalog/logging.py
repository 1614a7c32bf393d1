"""Logging setup shared by the CLI, the service and library callers."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import scrub_secrets

_LOGGER_NAME = "doccatalog"
_CONSOLE_FORMAT = "[doccatalog] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the doccatalog hierarchy (``doccatalog.<name>``)."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class RedactingFilter(logging.Filter):
    """Strips URL userinfo from log messages before any handler sees them.

    Remote URLs are redacted where they enter the git layer, but git's own
    stderr and third-party messages can still echo an authenticated URL.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = scrub_secrets(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Attach console (and optional file) handlers to the doccatalog logger.

    ``verbose`` enables debug output, including per-repository fetch progress;
    ``quiet`` limits the console to warnings and errors. The file sink always
    records at the effective level.
    """
    level = logging.DEBUG if verbose else logging.INFO
    console_level = logging.WARNING if quiet and not verbose else level
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not double output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    redact = RedactingFilter()
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    stream_handler.addFilter(redact)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.addFilter(redact)
        logger.addHandler(file_handler)

    return logger


__all__ = ["RedactingFilter", "configure_logging", "get_logger"]
