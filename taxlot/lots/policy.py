"""
Tax lot selection policies.

A policy decides which lots a sale consumes first. Each policy maps to a
single ordering key; the lot collection keeps its lots sorted by that key
and always sells from the front.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .errors import UnknownPolicy

if TYPE_CHECKING:
    from .collection import Lot

OrderKey = tuple
KeyFunc = Callable[["Lot"], OrderKey]


def _fifo_key(lot: "Lot") -> tuple[date]:
    return (lot.date,)


def _hifo_key(lot: "Lot") -> tuple[Decimal, date]:
    # Highest price first, oldest first among equal prices
    return (lot.price.copy_negate(), lot.date)


class SelectionPolicy(str, Enum):
    """Method for selecting which lots to sell."""
    FIFO = "fifo"  # First In, First Out
    HIFO = "hifo"  # Highest In, First Out

    @classmethod
    def from_name(cls, value: str) -> "SelectionPolicy":
        """
        Look up a policy by its exact name.

        Args:
            value: Policy name, e.g. "fifo" (case-sensitive)

        Returns:
            Matching SelectionPolicy

        Raises:
            UnknownPolicy: If no policy has that name
        """
        for policy in cls:
            if policy.value == value:
                return policy
        raise UnknownPolicy(value, tuple(p.value for p in cls))

    @property
    def sort_key(self) -> KeyFunc:
        """Ordering key applied to lots; smallest key is sold first."""
        return _POLICY_KEYS[self]


_POLICY_KEYS: dict[SelectionPolicy, KeyFunc] = {
    SelectionPolicy.FIFO: _fifo_key,
    SelectionPolicy.HIFO: _hifo_key,
}
