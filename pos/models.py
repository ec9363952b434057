"""Domain models for seat orders and bills."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

# Orders and bills are JSON objects owned by the client; unknown fields pass through.
Order = dict[str, Any]
Bill = dict[str, Any]

SMALL_SIZE = "Small"
UNKNOWN_PRODUCT_NAME = "Unknown Product"
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Product:
    """A catalog entry with its parsed base price."""

    product_id: str
    name: str
    base_price: Decimal


@dataclass(frozen=True)
class PricedOrder:
    """Priced line items in input order and their grand total."""

    items: list[dict[str, Any]] = field(default_factory=list)
    grand_total: Decimal = ZERO


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an update or close request."""

    seat_no: str
    message: str
    order: Order | None = None
    bill: Bill | None = None

    @property
    def closed(self) -> bool:
        return self.bill is not None


class PrintOutcome(str, Enum):
    PRINTED = "printed"
    SIMULATED = "simulated"

    @property
    def message(self) -> str:
        if self is PrintOutcome.PRINTED:
            return "Bill sent to printer successfully."
        return "Printer not found. Bill content logged to server console for simulation."
