"""
Structured logging setup using structlog.

Request ids (bound by the API middleware) and payout run dates (bound by
``payout_run_context``) are merged into every event logged inside them.
"""

import sys
import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional
from pathlib import Path

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import settings

NOISY_LOGGERS = ("uvicorn.access", "asyncio", "sqlalchemy.engine", "httpx", "httpcore")


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _plain_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    if settings.log_format == "json":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
    return handler


def setup_logging(log_file: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Development with console format logs through rich; everything else writes
    plain lines to stdout. ``log_file`` (or ``settings.log_file``) adds a file copy.
    """
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.is_development)

    structlog.configure(
        processors=_shared_processors() + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level)
    handlers: List[logging.Handler] = []

    if settings.is_development and settings.log_format != "json":
        rich_handler = RichHandler(
            console=Console(file=sys.stderr),
            show_path=False,
            rich_tracebacks=True,
            markup=False
        )
        rich_handler.setLevel(level)
        handlers.append(rich_handler)
    else:
        handlers.append(_plain_handler(logging.StreamHandler(sys.stdout), level))

    target = log_file or settings.log_file
    if target:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_plain_handler(logging.FileHandler(path), level))

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def payout_run_context(run_date: date) -> Iterator[None]:
    """Tag every event logged inside the block with the payout run date."""
    with structlog.contextvars.bound_contextvars(payout_run=run_date.isoformat()):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
