import logging
import sys
import uuid
from typing import Optional

import structlog
from structlog.types import Processor
from .config import settings

REQUEST_ID_HEADER = "X-Request-ID"

def setup_logging():
    """
    Configures structured logging for the application.

    structlog loggers and plain stdlib loggers (uvicorn, sqlalchemy, slowapi)
    share one processor chain and one stdout handler. Output is JSON unless
    DEBUG_MODE is on, in which case the console renderer is used.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer() if settings.DEBUG_MODE else structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # setup_logging may run more than once (tests, reloader); avoid duplicate handlers
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if settings.DEBUG_MODE else logging.INFO)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    bootstrap_logger = structlog.get_logger("bootstrap")
    bootstrap_logger.info(
        "logging_configured",
        debug_mode=settings.DEBUG_MODE,
        output_format='Console (human-readable)' if settings.DEBUG_MODE else 'JSON'
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Convenience function to get a structlog logger.
    """
    return structlog.get_logger(name)


def bind_request_context(request_id: Optional[str] = None, **fields) -> str:
    """
    Start a fresh structlog context for one request.

    Every log line emitted while handling the request carries request_id (the
    caller's X-Request-ID when given, otherwise a new one) plus any extra
    fields. Returns the request id so it can be echoed back.
    """
    request_id = request_id or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)
    return request_id
