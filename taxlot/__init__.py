"""Tax lot tracking with FIFO and HIFO lot selection."""

from .lots import (
    TaxLotError,
    ParseError,
    UnknownPolicy,
    InvalidOperand,
    InsufficientQuantity,
    SelectionPolicy,
    Action,
    LotOperation,
    parse_operation,
    read_operations,
    Lot,
    LotDisposal,
    SaleResult,
    LotCollection,
    format_lot,
    write_lots,
)

__version__ = "0.1.0"

__all__ = [
    "TaxLotError",
    "ParseError",
    "UnknownPolicy",
    "InvalidOperand",
    "InsufficientQuantity",
    "SelectionPolicy",
    "Action",
    "LotOperation",
    "parse_operation",
    "read_operations",
    "Lot",
    "LotDisposal",
    "SaleResult",
    "LotCollection",
    "format_lot",
    "write_lots",
]
