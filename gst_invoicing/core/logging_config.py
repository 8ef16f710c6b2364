# gst_invoicing/core/logging_config.py

import logging
import sys

from loguru import logger

from gst_invoicing.config.settings import settings

# stdlib loggers used by the invoicing services and routes
SERVICE_LOGGERS = (
    "invoice_numbering",
    "ledger_aggregator",
    "invoice_builder",
    "invoice_pdf",
    "invoice_service",
    "api.v1.invoices",
)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging() -> None:
    """
    Make loguru the only sink.

    Console output is colored for local runs; with ``LOG_JSON`` set every
    record is written as one JSON line for the container log collector.
    Uvicorn, SQLAlchemy and the service loggers are routed through
    ``InterceptHandler``.
    """
    logger.remove()
    level = settings.LOG_LEVEL.upper()
    if settings.LOG_JSON:
        logger.add(sys.stdout, level=level, serialize=True, backtrace=False, diagnose=False)
    else:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )

    intercept = InterceptHandler()
    logging.basicConfig(handlers=[intercept], level=logging.INFO, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [intercept]
        logging.getLogger(name).propagate = False

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    service_level = logging.DEBUG if settings.DEBUG else logging.INFO
    for name in SERVICE_LOGGERS:
        logging.getLogger(name).setLevel(service_level)
