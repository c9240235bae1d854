"""Utility modules for taxlot."""

from .logging import (
    setup_logging,
    LogContext,
    LotContextFilter,
    JSONFormatter,
    log_buy,
    log_sell,
    log_rejection,
)

__all__ = [
    "setup_logging",
    "LogContext",
    "LotContextFilter",
    "JSONFormatter",
    "log_buy",
    "log_sell",
    "log_rejection",
]
