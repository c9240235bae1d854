"""Tax lot tracking module."""

from .errors import (
    TaxLotError,
    ParseError,
    UnknownPolicy,
    InvalidOperand,
    InsufficientQuantity,
)
from .policy import SelectionPolicy
from .operations import (
    Action,
    LotOperation,
    parse_operation,
    read_operations,
)
from .collection import (
    Lot,
    LotDisposal,
    SaleResult,
    LotCollection,
    PRICE_QUANTUM,
    weighted_average_price,
)
from .formatting import format_decimal, format_lot, write_lots

__all__ = [
    # Errors
    "TaxLotError",
    "ParseError",
    "UnknownPolicy",
    "InvalidOperand",
    "InsufficientQuantity",
    # Policies
    "SelectionPolicy",
    # Operations
    "Action",
    "LotOperation",
    "parse_operation",
    "read_operations",
    # Collection
    "Lot",
    "LotDisposal",
    "SaleResult",
    "LotCollection",
    "PRICE_QUANTUM",
    "weighted_average_price",
    # Output
    "format_decimal",
    "format_lot",
    "write_lots",
]
