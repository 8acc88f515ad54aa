"""
Structured logging for the grid evaluator, built on structlog.

Components log key-value events through get_logger(__name__):
- run start and finish of Monte Carlo batches and optimizations (INFO)
- insufficient-history fallbacks (INFO) and numeric degeneracy (WARNING)
- per-path simulation summaries (DEBUG)

Monte Carlo runs bind `mc_run_id` with log_context so every event of one
batch can be correlated. The evaluator never configures logging on import;
the host (for example scripts/run_projection.py) calls setup_logging().
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    log_to_console: bool = True,
    log_to_file: bool = False,
    json_logs: bool = False,
    log_file: str = "grid_evaluator.log",
) -> None:
    """
    Configure structlog and stdlib logging for a host process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: ./logs, only used with log_to_file)
        log_to_console: Whether to log to console
        log_to_file: Whether to log to rotating files
        json_logs: Whether to use JSON format for logs (one object per event)
        log_file: File name inside log_dir for the rotating file handler
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level_int)
        handlers.append(console_handler)

    if log_to_file:
        if log_dir is None:
            log_dir = Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level_int)
        handlers.append(file_handler)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=log_to_console,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=log_level_int,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a lazily bound logger; configuration applies once setup_logging runs."""
    return structlog.get_logger(name)


class log_context:
    """Bind key-value context (e.g. mc_run_id) to every log event inside the block."""

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
