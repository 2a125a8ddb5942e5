"""
Structured logging for the lead pipeline.

The worker, the API app and the operator scripts all call setup_logging() once at
startup. Events are snake_case names with keyword context (message_id, property_id,
sheet_name); the request middleware and the master loop bind extra context through
structlog contextvars.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from sync_leads.config import LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Client libraries that log every HTTP round trip to OpenAI and Google
QUIET_LOGGERS = (
    "urllib3",
    "requests",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth",
    "google_auth_httplib2",
    "uvicorn.access",
)


def setup_logging(level: str = LOG_LEVEL) -> None:
    """
    Configure stdlib logging and structlog for the pipeline.

    DEBUG renders colored console lines for local runs; every other level emits
    JSON, one event per line, for the log shipper.

    Args:
        level: Log level name, defaults to LOG_LEVEL from the environment
    """
    level = level.upper()
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=level,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.dev.ConsoleRenderer(colors=True)
            if level == "DEBUG"
            else structlog.processors.JSONRenderer()
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
