"""structlog configuration for arbiter.

Every ``arbiter.*`` module logs through the standard library; structlog
owns the formatting.  Values bound with :func:`bind_world` (the running
world's id) are merged into each record, including records emitted from
agent tasks, because asyncio copies the context into every task it creates.

Two output modes, both on stderr:
- Human (default): ``key=value`` console lines, coloured on a TTY
- JSON (--log-json): one JSON object per line
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager

import structlog

LOGGER_NAME = "arbiter"

# Libraries whose DEBUG chatter is never useful next to ours.
_QUIET_LOGGERS = ("asyncio",)


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route all logging to stderr through structlog.

    Args:
        verbose: Let ``arbiter`` loggers through at DEBUG instead of WARNING.
        log_json: Render JSON lines instead of console lines.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_world(world_id: str) -> AbstractContextManager[None]:
    """Tag every log record emitted inside the block with *world_id*."""
    return structlog.contextvars.bound_contextvars(world_id=world_id)
