"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Literal

import structlog


def configure_logging(
    debug: bool = False,
    log_format: Literal["json", "console"] = "json",
    component: str | None = None,
) -> None:
    """Configure structlog to write to stderr.

    Stdout carries client output (``listen``, ``query``, ``watch``), so logs
    never go there.

    Args:
        debug: Enable debug-level logging when True.
        log_format: ``json`` for machine-readable lines, ``console`` for a
            terminal.
        component: Command name bound to every log entry, e.g. ``daemon``.
    """
    level = logging.DEBUG if debug else logging.INFO

    renderer: structlog.types.Processor
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if component is not None:
        structlog.contextvars.bind_contextvars(component=component)

    # asyncio reports slow callbacks and unclosed transports at DEBUG.
    logging.basicConfig(format="%(message)s", level=level, stream=sys.stderr)
    logging.getLogger("asyncio").setLevel(logging.DEBUG if debug else logging.WARNING)
