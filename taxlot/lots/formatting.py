"""Rendering of open lots for the output stream."""

from decimal import Decimal
from typing import Iterable, TextIO

from .collection import Lot

DEFAULT_PRICE_PLACES = 2
DEFAULT_QUANTITY_PLACES = 8


def format_decimal(value: Decimal, places: int) -> str:
    """
    Format a decimal with at least `places` decimal places.

    Values needing more places than requested keep all of them, so the
    printed text always parses back to the stored value.
    """
    exponent = value.normalize().as_tuple().exponent
    own_places = -exponent if isinstance(exponent, int) and exponent < 0 else 0
    return f"{value:.{max(places, own_places)}f}"


def format_lot(
    lot: Lot,
    price_places: int = DEFAULT_PRICE_PLACES,
    quantity_places: int = DEFAULT_QUANTITY_PLACES,
    include_lot_id: bool = True,
) -> str:
    """Render a lot as ``lot_id,date,price,quantity``."""
    fields = [
        lot.date.isoformat(),
        format_decimal(lot.price, price_places),
        format_decimal(lot.quantity, quantity_places),
    ]
    if include_lot_id:
        fields.insert(0, str(lot.lot_id))
    return ",".join(fields)


def write_lots(
    lots: Iterable[Lot],
    stream: TextIO,
    price_places: int = DEFAULT_PRICE_PLACES,
    quantity_places: int = DEFAULT_QUANTITY_PLACES,
    include_lot_id: bool = True,
) -> int:
    """
    Write lots to a stream, one per line.

    Every lot is rendered before anything is written, so a lot that fails
    to format leaves the stream untouched.

    Returns:
        Number of lots written
    """
    rendered = [
        format_lot(lot, price_places, quantity_places, include_lot_id) + "\n"
        for lot in lots
    ]
    stream.write("".join(rendered))
    return len(rendered)
