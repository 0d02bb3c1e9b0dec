from logging import StreamHandler, getLogger

from structlog import configure
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)
from structlog.stdlib import LoggerFactory, ProcessorFormatter

__all__ = ["setup_logging"]


def setup_logging(config, *args, **kwargs):
    """Route structlog through the stdlib root logger; console output in DEV, JSON elsewhere."""
    development = config.ENVIRONMENT == "DEV"

    configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            TimeStamper(fmt="iso"),
            format_exc_info,
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    formatter = ProcessorFormatter(
        processors=[
            ProcessorFormatter.remove_processors_meta,
            ConsoleRenderer() if development else JSONRenderer(),
        ]
    )

    handler = StreamHandler()
    handler.setFormatter(formatter)

    root = getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL.upper())
