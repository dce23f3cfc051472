"""
structlog setup for codesherpa.

Events are rendered through the standard logging root, which holds exactly one
handler: nothing (the default, keeping the CLI output clean), the console when
``-v`` is given, or a file when ``--log`` is given.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger, ProcessorFormatter
from structlog.typing import Processor

_SHARED: tuple[Processor, ...] = (
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.format_exc_info,
    structlog.processors.TimeStamper(fmt="iso"),
)


def level_for_verbosity(verbose: int) -> int:
    """Map a ``-v`` count to a logging level."""
    return logging.DEBUG if verbose > 0 else logging.INFO


def _install(handler: logging.Handler, level: int) -> None:
    """Make ``handler`` the only root handler and route structlog through it."""
    structlog.configure(
        processors=_SHARED + (ProcessorFormatter.wrap_for_formatter,),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    handler.setFormatter(
        ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=_SHARED,
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def configure_logging(level: int = logging.INFO, enable_console: bool = True) -> None:
    """Log to stderr at ``level``, or drop everything when ``enable_console`` is False."""
    _install(logging.StreamHandler() if enable_console else logging.NullHandler(), level)


def redirect_logging_to_file(path: Path, level: int = logging.INFO) -> None:
    """Send every event at ``level`` or above to ``path``, truncating it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _install(logging.FileHandler(path, mode="w", encoding="utf-8"), level)


def get_logger(name: Optional[str] = None) -> BoundLogger:
    return structlog.get_logger(name)
