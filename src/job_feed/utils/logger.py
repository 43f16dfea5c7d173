"""Logging configuration.

Records bound with ``logger.bind(operation=...)`` carry the scrape operation id;
it shows up in the console line and as a Sentry tag.
"""
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[operation]}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)


def _sentry_sink(message) -> None:
    record = message.record
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("scrape_operation", record["extra"].get("operation", "-"))
        scope.set_extra("name", record["name"])
        scope.set_extra("line", record["line"])
        if record["exception"]:
            sentry_sdk.capture_exception(record["exception"].value, scope=scope)
        else:
            sentry_sdk.capture_message(record["message"], level="error", scope=scope)


def setup_logger(
    log_level: str = "INFO",
    *,
    log_file: Path | None = None,
    sentry_dsn: str = "",
    sentry_environment: str = "development",
) -> None:
    logger.remove()
    logger.configure(extra={"operation": "-"})

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    if log_file is not None:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5, enqueue=True)

    if sentry_dsn:
        sentry_sdk.init(dsn=sentry_dsn, environment=sentry_environment)
        logger.add(_sentry_sink, level="ERROR")

    logger.debug(f"Logger initialized at level {log_level}")
