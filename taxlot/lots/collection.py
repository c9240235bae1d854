"""
Tax lot collection.

Stores open lots ordered by the active selection policy, merges buys made on
the same date, and consumes lots from the front of the order on sells.
"""

import itertools
import logging
import operator
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import (
    ROUND_HALF_EVEN,
    Context,
    Decimal,
    DecimalException,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Iterator, Optional, Union

from .errors import InsufficientQuantity, InvalidOperand
from .operations import Action, LotOperation
from .policy import SelectionPolicy

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

# Weighted average prices are rounded to 8 decimal places
PRICE_QUANTUM = Decimal("0.00000001")

# Quantity arithmetic must be exact; anything that would round is rejected
_QUANTITY_CONTEXT = Context(
    prec=50,
    rounding=ROUND_HALF_EVEN,
    traps=[Inexact, InvalidOperation, Overflow],
)
_PRICE_CONTEXT = Context(
    prec=50,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, Overflow],
)

# Operands stay a quarter of the context's exponent range away from its
# limits, so products and sums of them cannot overflow
MAX_EXPONENT = _PRICE_CONTEXT.Emax // 4


def _price_math(operation, *args) -> Decimal:
    with localcontext(_PRICE_CONTEXT):
        return operation(*args)


@dataclass
class Lot:
    """An open quantity of the asset bought on one date at one cost basis."""
    lot_id: int
    date: date
    price: Decimal
    quantity: Decimal

    @property
    def cost_basis(self) -> Decimal:
        """Total cost of the quantity still held."""
        return _price_math(operator.mul, self.price, self.quantity)


@dataclass(frozen=True)
class LotDisposal:
    """The part of a single lot consumed by a sale."""
    lot_id: int
    date: date
    price: Decimal
    quantity: Decimal
    closed: bool

    @property
    def cost_basis(self) -> Decimal:
        return _price_math(operator.mul, self.price, self.quantity)


@dataclass
class SaleResult:
    """Outcome of a sale: which lots were consumed and by how much."""
    date: date
    sale_price: Decimal
    quantity: Decimal
    disposals: list[LotDisposal] = field(default_factory=list)

    @property
    def proceeds(self) -> Decimal:
        return _price_math(operator.mul, self.sale_price, self.quantity)

    @property
    def cost_basis(self) -> Decimal:
        with localcontext(_PRICE_CONTEXT):
            return sum((d.cost_basis for d in self.disposals), Decimal(0))

    @property
    def gain_loss(self) -> Decimal:
        return _price_math(operator.sub, self.proceeds, self.cost_basis)


def _to_decimal(value: Number, name: str) -> Decimal:
    """Convert an operand to a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidOperand(f"{name} must be a number, got {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidOperand(f"{name} must be a number, got {value!r}")
    if not number.is_finite():
        raise InvalidOperand(f"{name} must be finite, got {number}")
    if number and abs(number.adjusted()) > MAX_EXPONENT:
        raise InvalidOperand(f"{name} out of range: {number}")
    return number


def _check_operands(price: Number, quantity: Number) -> tuple[Decimal, Decimal]:
    price = _to_decimal(price, "price")
    quantity = _to_decimal(quantity, "quantity")
    if price < 0:
        raise InvalidOperand(f"price cannot be negative: {price}")
    if quantity <= 0:
        raise InvalidOperand(f"quantity must be positive: {quantity}")
    # -0 compares equal to zero but would print with its sign
    return price.copy_abs(), quantity


def _exact(operation, *args) -> Decimal:
    """Run a quantity calculation, failing rather than rounding."""
    try:
        with localcontext(_QUANTITY_CONTEXT):
            return operation(*args)
    except DecimalException as e:
        raise InvalidOperand(f"quantity out of range: {e!r}")


def weighted_average_price(
    price: Decimal,
    quantity: Decimal,
    other_price: Decimal,
    other_quantity: Decimal,
) -> Decimal:
    """Cost basis per unit after combining two purchases."""
    try:
        with localcontext(_PRICE_CONTEXT):
            total_cost = price * quantity + other_price * other_quantity
            average = total_cost / (quantity + other_quantity)
            return average.quantize(PRICE_QUANTUM)
    except DecimalException as e:
        raise InvalidOperand(f"price out of range: {e!r}")


class LotCollection:
    """
    Open tax lots kept in the order they will be sold.

    The order is fixed by the selection policy for the collection's lifetime:
    - FIFO: ascending date
    - HIFO: descending price, ascending date among equal prices

    Complexity:
    - Buy: O(1) same-date lookup through a date index. Inserting is O(1)
      for FIFO when dates arrive in order and O(N) for HIFO.
    - Sell: O(1) per lot consumed, always taken from the front.
    """

    def __init__(self, policy: SelectionPolicy = SelectionPolicy.FIFO):
        """
        Initialize an empty collection.

        Args:
            policy: Selection policy deciding which lots are sold first
        """
        self.policy = policy
        self._key = policy.sort_key

        self._lots: deque[Lot] = deque()
        self._by_date: dict[date, Lot] = {}
        self._total_quantity = Decimal(0)
        self._lot_ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._lots)

    def __bool__(self) -> bool:
        return bool(self._lots)

    def __iter__(self) -> Iterator[Lot]:
        return iter(self.remaining_lots())

    def __contains__(self, lot_date: date) -> bool:
        return lot_date in self._by_date

    def __repr__(self) -> str:
        return (
            f"LotCollection(policy={self.policy.value}, lots={len(self._lots)}, "
            f"total_quantity={self._total_quantity})"
        )

    @property
    def total_quantity(self) -> Decimal:
        """Quantity held across all lots."""
        return self._total_quantity

    def remaining_lots(self) -> list[Lot]:
        """Copies of the open lots in selling order."""
        return [replace(lot) for lot in self._lots]

    def get_lot(self, lot_date: date) -> Optional[Lot]:
        """Copy of the lot bought on `lot_date`, if one is open."""
        lot = self._by_date.get(lot_date)
        return replace(lot) if lot else None

    def apply(self, operation: LotOperation) -> Union[Lot, SaleResult]:
        """Apply a parsed buy or sell operation."""
        if operation.action == Action.BUY:
            return self.apply_buy(operation.date, operation.price, operation.quantity)
        return self.apply_sell(operation.date, operation.price, operation.quantity)

    def apply_buy(self, lot_date: date, price: Number, quantity: Number) -> Lot:
        """
        Record a purchase.

        A purchase on a date that already has an open lot is merged into it:
        quantities add up and the price becomes the weighted average cost.
        Otherwise a new lot is inserted at its position in selling order.

        Args:
            lot_date: Purchase date
            price: Price per unit (>= 0)
            quantity: Quantity bought (> 0)

        Returns:
            Copy of the created or merged lot

        Raises:
            InvalidOperand: If price or quantity is non-finite or out of range
        """
        price, quantity = _check_operands(price, quantity)
        new_total = _exact(operator.add, self._total_quantity, quantity)

        existing = self._by_date.get(lot_date)
        if existing is not None:
            new_quantity = _exact(operator.add, existing.quantity, quantity)
            new_price = weighted_average_price(
                existing.price, existing.quantity, price, quantity
            )
            old_key = self._key(existing)
            existing.quantity = new_quantity
            existing.price = new_price
            if self._key(existing) != old_key:
                self._remove(existing)
                self._insert(existing)
            lot = existing
            logger.debug(f"Merged buy into lot {lot.lot_id}: {quantity} @ {price}")
        else:
            lot = Lot(
                lot_id=next(self._lot_ids),
                date=lot_date,
                price=price,
                quantity=quantity,
            )
            self._insert(lot)
            self._by_date[lot_date] = lot
            logger.debug(f"Created lot {lot.lot_id}: {quantity} @ {price} on {lot_date}")

        self._total_quantity = new_total
        return replace(lot)

    def apply_sell(self, sale_date: date, price: Number, quantity: Number) -> SaleResult:
        """
        Record a sale, consuming lots in selling order.

        The sale is all-or-nothing: if the collection holds less than
        `quantity`, nothing is changed.

        Args:
            sale_date: Sale date
            price: Sale price per unit; reported only, never used to pick lots
            quantity: Quantity sold (> 0)

        Returns:
            SaleResult listing the consumed part of each lot

        Raises:
            InvalidOperand: If price or quantity is non-finite or out of range
            InsufficientQuantity: If more is sold than is held
        """
        price, quantity = _check_operands(price, quantity)
        if quantity > self._total_quantity:
            raise InsufficientQuantity(quantity, self._total_quantity)

        # Work out every step before touching any lot
        steps = []
        remaining = quantity
        for lot in self._lots:
            if remaining <= 0:
                break
            sold = min(remaining, lot.quantity)
            steps.append((lot, sold, _exact(operator.sub, lot.quantity, sold)))
            remaining = _exact(operator.sub, remaining, sold)
        new_total = _exact(operator.sub, self._total_quantity, quantity)

        result = SaleResult(date=sale_date, sale_price=price, quantity=quantity)
        for lot, sold, left in steps:
            closed = left == 0
            result.disposals.append(LotDisposal(
                lot_id=lot.lot_id,
                date=lot.date,
                price=lot.price,
                quantity=sold,
                closed=closed,
            ))
            if closed:
                self._lots.popleft()
                del self._by_date[lot.date]
            else:
                lot.quantity = left
            logger.debug(f"Sold {sold} from lot {lot.lot_id} ({left} left)")

        self._total_quantity = new_total
        return result

    def _insert(self, lot: Lot) -> None:
        """Insert a lot at its position in selling order, scanning from the tail."""
        key = self._key(lot)
        index = len(self._lots)
        for existing in reversed(self._lots):
            if self._key(existing) <= key:
                break
            index -= 1
        self._lots.insert(index, lot)

    def _remove(self, lot: Lot) -> None:
        for index, existing in enumerate(self._lots):
            if existing is lot:
                del self._lots[index]
                return
