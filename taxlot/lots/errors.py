"""Errors raised while parsing and applying lot operations."""

from decimal import Decimal
from typing import Optional


class TaxLotError(Exception):
    """Base class for all tax lot errors."""

    # Input line that triggered the error, when known
    line_number: Optional[int] = None


class ParseError(TaxLotError):
    """Raised when an input line cannot be parsed into an operation."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.message = message
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)

    def at_line(self, line_number: int) -> "ParseError":
        """Return a copy of this error tagged with the input line number."""
        return ParseError(self.message, line_number)


class UnknownPolicy(TaxLotError):
    """Raised when the selection policy name is not recognised."""

    def __init__(self, value: str, available: tuple[str, ...] = ()):
        self.value = value
        self.available = available
        message = f"Unknown selection policy: {value!r}"
        if available:
            message += f". Available: {', '.join(available)}"
        super().__init__(message)


class InvalidOperand(TaxLotError):
    """Raised when a buy or sell is given a non-finite or out-of-range value."""


class InsufficientQuantity(TaxLotError):
    """Raised when a sell requests more than the collection holds."""

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested}: only {available} held"
        )
