"""Logging for the pylerna CLI.

Every module logs through `structlog.get_logger(__name__)`. The CLI calls
`configure_logging` once; records from pylerna and from libraries then share
one stderr handler, rendered for a terminal or as JSON lines for CI.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor

# Libraries that log on their own; only their warnings get through.
QUIET_LOGGERS = ("asyncio", "watchdog")


def _pre_chain(*, timestamps: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if timestamps:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain.extend([structlog.processors.StackInfoRenderer(), structlog.processors.UnicodeDecoder()])
    return chain


def _handler(pre_chain: list[Processor], *, log_json: bool) -> logging.Handler:
    renderer: Processor
    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    return handler


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route structlog and stdlib logging to stderr.

    pylerna loggers emit INFO and above (DEBUG with `verbose`); everything
    else is held to WARNING. JSON lines carry a UTC timestamp; the console
    format leaves it out since the run is being watched live.

    Args:
        verbose: Lower pylerna loggers to DEBUG.
        log_json: Render one JSON object per line instead of console text.
    """
    pre_chain = _pre_chain(timestamps=log_json)
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(pre_chain, log_json=log_json))
    root.setLevel(logging.WARNING)

    logging.getLogger("pylerna").setLevel(logging.DEBUG if verbose else logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
