"""Structured diagnostic logging.

The EventLog is the audit record; this is the operator's view of what
the process is doing. Rejected operations are logged at debug level,
committed ones at info.
"""

from __future__ import annotations

import logging
import sys

import structlog


def get_logger(name: str = "ballot"):
    """Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("vote_cast", voter="alice", proposal_id=0)
    """
    return structlog.get_logger(name)


def configure_logging(is_development: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog on top of the standard logging module.

    Args:
        is_development: Key-value console output if True, JSON otherwise.
        log_level: DEBUG, INFO, WARNING or ERROR.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        renderer = structlog.processors.KeyValueRenderer(key_order=["event"], drop_missing=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
