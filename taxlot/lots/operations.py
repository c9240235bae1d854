"""
Parsing of lot operations from text input.

Each input line has the shape ``date,action,price,quantity``, for example
``2021-01-01,buy,10000.00,1.00000000``.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Iterator

from .errors import ParseError

logger = logging.getLogger(__name__)

FIELD_NAMES = ("date", "action", "price", "quantity")

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class Action(str, Enum):
    """Type of operation applied to the lot collection."""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class LotOperation:
    """A single buy or sell parsed from the input stream."""
    date: date
    action: Action
    price: Decimal
    quantity: Decimal


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD date."""
    if not _DATE_PATTERN.match(value):
        raise ParseError(f"Could not parse date {value!r}. Format: YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ParseError(f"Could not parse date {value!r}: not a calendar date")


def parse_action(value: str) -> Action:
    """Parse an action keyword; only lowercase buy and sell are accepted."""
    for action in Action:
        if action.value == value:
            return action
    raise ParseError(f"Could not parse action {value!r}. Options: buy, sell")


def parse_decimal(value: str, field_name: str) -> Decimal:
    """Parse a non-negative decimal number."""
    if not _NUMBER_PATTERN.match(value):
        raise ParseError(f"Could not parse {field_name} {value!r} as a decimal")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ParseError(f"Could not parse {field_name} {value!r} as a decimal")
    if number < 0:
        raise ParseError(f"{field_name} cannot be negative: {value}")
    # "-0" passes the check above; drop its sign
    return number.copy_abs()


def parse_operation(line: str) -> LotOperation:
    """
    Parse one input line into a LotOperation.

    Args:
        line: Raw input line, with or without its line terminator

    Returns:
        Parsed LotOperation

    Raises:
        ParseError: If the line has the wrong number of fields or any
            field is malformed
    """
    parts = line.rstrip("\r\n").split(",")
    if len(parts) != len(FIELD_NAMES):
        raise ParseError(
            f"Expected {len(FIELD_NAMES)} fields ({','.join(FIELD_NAMES)}), "
            f"got {len(parts)}"
        )

    date_field, action_field, price_field, quantity_field = parts
    return LotOperation(
        date=parse_date(date_field),
        action=parse_action(action_field),
        price=parse_decimal(price_field, "price"),
        quantity=parse_decimal(quantity_field, "quantity"),
    )


def read_operations(lines: Iterable[str]) -> Iterator[tuple[int, LotOperation]]:
    """
    Parse operations from an iterable of lines.

    Yields:
        (line_number, LotOperation) pairs, numbered from 1

    Raises:
        ParseError: Tagged with the line number of the first malformed line
    """
    for line_number, line in enumerate(lines, 1):
        try:
            operation = parse_operation(line)
        except ParseError as e:
            raise e.at_line(line_number) from e
        logger.debug(f"Parsed line {line_number}: {operation}")
        yield line_number, operation
