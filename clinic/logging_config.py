"""
Structured logging configuration.

Django owns the stdlib ``logging`` setup through ``settings.LOGGING``;
this module builds that dictionary with a structlog
``ProcessorFormatter`` so records emitted by Django, DRF and our own
``structlog.get_logger(__name__)`` loggers share one output format:

- JSON lines in production (``LOG_FORMAT=json``)
- coloured console output in development (``LOG_FORMAT=console``)

Nothing here imports Django models; settings import it at load time.
"""
from __future__ import annotations

from typing import Any

import structlog
from structlog.types import Processor

SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def build_logging_config(level: str = "INFO", log_format: str = "json") -> dict[str, Any]:
    """Return a ``dictConfig`` mapping for ``settings.LOGGING``."""
    final_processors: list[Processor] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if log_format == "json":
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(_renderer(log_format))
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": final_processors,
                "foreign_pre_chain": SHARED_PROCESSORS,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            "django.db.backends": {"level": "WARNING"},
            # 4xx responses are already reported by the API exception handler
            "django.request": {"level": "ERROR"},
        },
    }


def configure_structlog() -> None:
    """Route structlog through stdlib logging so Django's handlers apply."""
    structlog.configure(
        processors=SHARED_PROCESSORS + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(request_id: str, method: str, path: str, **extra: Any) -> None:
    """Bind request context to all log entries emitted while handling it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        http_method=method,
        http_path=path,
        **extra,
    )
