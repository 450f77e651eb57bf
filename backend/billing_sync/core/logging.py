"""structlog setup for the billing sync service.

One processor chain serves both structlog loggers and stdlib loggers
(uvicorn, SQLAlchemy, stripe), so every line comes out as the same JSON
document in production or the same console line in debug. Each entry carries
the request correlation ID, and webhook handling binds the Stripe event ID
and type so every line written while an event is processed names it.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Never written to logs, whatever the call site passes
_REDACTED_KEYS = frozenset({"api_key", "secret", "webhook_secret", "signature", "stripe_signature"})

_QUIET_LOGGERS = ("uvicorn.access", "stripe", "sqlalchemy.engine", "botocore", "aiosqlite")


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def redact_secrets(logger, method, event_dict):
    for key in _REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def bind_event_context(event_id: str, event_type: str) -> None:
    """Attach a Stripe event to all log lines for the rest of the request."""
    structlog.contextvars.bind_contextvars(stripe_event_id=event_id, stripe_event_type=event_type)


def clear_event_context() -> None:
    structlog.contextvars.unbind_contextvars("stripe_event_id", "stripe_event_type")


def _stdlib_config(log_level: str, renderer, pre_chain: list) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": pre_chain,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
    }


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and route stdlib logging through it.

    Must run before the rest of the package is imported: loggers are cached
    on first use and keep whatever chain was active then.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig(_stdlib_config(log_level, renderer, processors))

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
