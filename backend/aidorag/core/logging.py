"""Structured logging configuration using structlog."""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, override

import structlog

LOG_DIR = Path(__file__).parent.parent.parent / "logs"

# Chatty HTTP libraries used by supabase-py and the Gemini client
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "google_genai", "urllib3")

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


class PlainRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that drops console color codes."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        return _ANSI_ESCAPE.sub("", super().format(record))


def _file_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = PlainRotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Render JSON lines instead of colored console output
        log_to_file: Also write ingestion.log and errors.log
        log_dir: Directory for log files (defaults to backend/logs)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_to_file:
        directory = log_dir or LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_file_handler(directory / "ingestion.log", logging.DEBUG, max_mb=10, backups=5))
        root_logger.addHandler(_file_handler(directory / "errors.log", logging.ERROR, max_mb=5, backups=10))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def document_context(document_id: str, **values: Any) -> Iterator[None]:
    """Attach a document id (and extra fields) to every log line in the block."""
    with structlog.contextvars.bound_contextvars(document_id=document_id, **values):
        yield


def get_logger(name: str | None = None) -> Any:
    """Get a configured logger instance."""
    return structlog.get_logger(name)
