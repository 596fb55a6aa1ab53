"""Structured logging for the explorer backend, built on structlog.

Every HTTP request gets a short request_id and its path bound into
structlog's contextvars by the API middleware, so all events emitted
while serving it (engine, reconciler, gateway) carry both fields. The
health refresher runs outside any request and logs without them.
"""

import logging
import os
import uuid

import structlog

# Libraries that log every outbound call or statement at INFO/DEBUG; the
# health probes poll on an interval and would drown the service's own events
_CHATTY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib logging through it.

    LOG_FORMAT selects the renderer: "json" in production, "console"
    (the default) for local runs. uvicorn's own loggers are re-routed to
    the same handler.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(path: str) -> str:
    """Start a fresh log context for one HTTP request.

    Drops whatever the previous request on this task left behind and
    binds a new request_id together with path. Returns the request_id.
    """
    request_id = uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=path)
    return request_id


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
