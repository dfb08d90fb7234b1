"""structlog setup for the dashboard process.

Every module logs through ``get_logger(__name__)`` with snake_case event
names and key/value fields. Fields bound with
``structlog.contextvars.bound_contextvars`` (the proxy binds the upstream
path) are merged into every event emitted inside that block.
"""

import logging
from typing import Literal

import structlog

LogFormat = Literal["console", "json"]

# Third-party loggers that emit a line per HTTP request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "aiosqlite")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_level: str = "INFO", log_format: LogFormat = "console") -> None:
    """Route structlog events through one stdlib handler on the root logger.

    Args:
        log_level: Root level name; unknown names fall back to INFO.
        log_format: "console" for local runs, "json" for log shipping.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
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
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
