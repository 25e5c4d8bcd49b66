"""
structlog setup for the scoring engine.

Every event carries the engine version, plus the acting user and session when
a request has bound them via `bind_actor`.
"""

import logging
import sys
from typing import Optional

import structlog

from compliance_engine.config import settings


def _add_engine_version(logger, method_name, event_dict):
    event_dict.setdefault("engine_version", settings.ENGINE_VERSION)
    return event_dict


def bind_actor(user_id: Optional[str], session_id: Optional[str] = None) -> None:
    """Tag all log lines of the current request with the acting identity."""
    structlog.contextvars.bind_contextvars(
        user_id=user_id or "anonymous",
        session_id=session_id,
    )


def setup_logging() -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_engine_version,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.DEBUG
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("rq.worker").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )
