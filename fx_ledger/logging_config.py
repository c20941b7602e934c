"""
Structured Logging

Ledger events (partner created, backup restored, report exported...) are
written as one JSON object per line so they can be grepped or shipped
elsewhere. Plain text output is available for interactive use.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes log_action attaches to a record
EVENT_FIELDS = ("action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """Render a log record as a single JSON line"""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for name in EVENT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    logger_name: str = "fx_ledger",
    log_format: str = "json",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Point the ledger logger at stderr or a file.

    Calling this again replaces the previous handler instead of adding a
    second one.

    Args:
        level: Level name, case-insensitive
        logger_name: Logger to configure
        log_format: "json" or "text"
        log_file: Path to append to; stderr when omitted
    """
    logger = logging.getLogger(logger_name)

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handler = logging.FileHandler(log_file, encoding="utf-8") if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger


def get_logger(name: str = "fx_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a ledger event.

    Args:
        logger: Logger to write through
        level: Level name such as "info" or "warning"
        message: Human readable summary
        action: Event name, e.g. "transaction_added"
        resource: What the event touched, e.g. "partner:<id>"
        extra: Structured details
    """
    event = {"action": action, "resource": resource, "extra": extra or None}
    logger.log(
        logging.getLevelName(level.upper()),
        message,
        extra={key: value for key, value in event.items() if value}
    )
