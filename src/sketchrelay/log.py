"""Structured logging utilities.

Every component logs through a structlog logger bound to its own name, so
a single request can be followed across the engine, the submitter and the
transport by its ``request_id`` and ``topic`` fields.
"""

import logging
import os
from typing import Any, Optional

import structlog


def configure(level: Optional[str] = None) -> None:
    """ Set the minimum log level. The *level* defaults to the value of
        SKETCHRELAY_LOG_LEVEL, or INFO if that is unset.
    """

    if level is None:
        level = os.environ.get("SKETCHRELAY_LOG_LEVEL", "INFO")

    numeric = getattr(logging, str(level).upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        cache_logger_on_first_use=False,
    )


def get_component_logger(component: str, logger: Optional[Any] = None) -> Any:
    """ Return *logger*, or the default structlog logger, with every event
        tagged by *component*.
    """

    if logger is None:
        logger = structlog.get_logger()

    return logger.bind(component=component)
