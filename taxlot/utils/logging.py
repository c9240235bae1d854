"""
Logging setup for taxlot.

Everything logs under the ``taxlot`` logger. Console output goes to stderr
because stdout carries the lot listing; JSON records and a rotating log file
are optional.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "taxlot"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUPS = 5

# Attributes of a bare LogRecord; anything else came from `extra` or the context
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_context = threading.local()


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with extra and context fields inline."""

    def __init__(self, include_location: bool = False):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_location:
            entry["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES
        )
        # Decimals and dates are written as strings
        return json.dumps(entry, default=str)


def current_context() -> dict:
    """Fields attached to every record logged from this thread."""
    return dict(getattr(_context, "fields", {}))


class LotContextFilter(logging.Filter):
    """Copy the current thread's context fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in current_context().items():
            setattr(record, key, value)
        return True


class LogContext:
    """
    Scoped logging context.

    Fields are added on top of any enclosing context and the enclosing
    fields are restored on exit, also when the block raises.

    Example:
        with LogContext(policy="fifo"):
            with LogContext(line_number=3):
                logger.info("...")  # carries policy and line_number
    """

    def __init__(self, **fields):
        self.fields = fields
        self._outer: dict = {}

    def __enter__(self):
        self._outer = current_context()
        _context.fields = {**self._outer, **self.fields}
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context.fields = self._outer
        return False


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    json_format: bool = False,
    console_output: bool = True,
) -> logging.Logger:
    """
    Configure the taxlot logger, replacing handlers from an earlier call.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR), any case
        log_file: Path to a rotating log file (optional)
        json_format: Write JSON records instead of text lines
        console_output: Write records to stderr

    Returns:
        The configured ``taxlot`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        ))

    if json_format:
        formatter: logging.Formatter = JSONFormatter(include_location=True)
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    # Records from child loggers skip this logger's filters, so the
    # handlers carry the context filter
    context_filter = LotContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        logger.addHandler(handler)

    return logger


# Lot-specific logging helpers
def log_buy(
    logger: logging.Logger,
    lot_id: int,
    date: Any,
    price: Any,
    quantity: Any,
    merged: bool = False,
    **kwargs,
) -> None:
    """Log a purchase with structured data."""
    verb = "Merged" if merged else "Opened"
    logger.info(
        f"{verb} lot {lot_id}: bought {quantity} on {date} at {price}",
        extra={
            "event_type": "buy",
            "lot_id": lot_id,
            "date": str(date),
            "price": str(price),
            "quantity": str(quantity),
            "merged": merged,
            **kwargs,
        },
    )


def log_sell(
    logger: logging.Logger,
    date: Any,
    price: Any,
    quantity: Any,
    lots_consumed: int,
    gain_loss: Any,
    **kwargs,
) -> None:
    """Log a sale with structured data."""
    logger.info(
        f"Sold {quantity} on {date} at {price} from {lots_consumed} lot(s), "
        f"gain/loss {gain_loss}",
        extra={
            "event_type": "sell",
            "date": str(date),
            "price": str(price),
            "quantity": str(quantity),
            "lots_consumed": lots_consumed,
            "gain_loss": str(gain_loss),
            **kwargs,
        },
    )


def log_rejection(
    logger: logging.Logger,
    error_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log an operation or input that aborted the run."""
    logger.error(
        f"Rejected: {message}",
        extra={
            "event_type": "rejected",
            "error_type": error_type,
            **kwargs,
        },
    )
