"""structlog setup.

Every event carries the app version and environment. Uvicorn's own access log
is silenced because ``RequestIdMiddleware`` writes one ``request_completed``
event per request instead.
"""

import logging
import sys

import structlog

from questlog.config import Settings


def _app_context(settings: Settings) -> structlog.types.Processor:
    def add_app_context(_logger: object, _method: str, event_dict: dict) -> dict:
        event_dict.setdefault("app_version", settings.app_version)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return add_app_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root logger it writes through."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _app_context(settings),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
