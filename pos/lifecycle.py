"""Order lifecycle: create, update and close seat orders into archived bills."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from pos.catalog import Catalog, load_catalog, load_product_records
from pos.config import CATALOG_PATH
from pos.errors import ConflictError, OrderNotFoundError, ValidationError
from pos.models import Bill, Order, PrintOutcome, TransitionResult
from pos.persistence import OrderStore
from pos.pricing import price_items

logger = logging.getLogger(__name__)


class ReceiptSink(Protocol):
    def print_bill(self, bill: Bill) -> PrintOutcome: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def seat_key(seat_no: Any) -> str | None:
    """Normalize a seat number to its store key, or None when it is blank."""
    if seat_no is None or isinstance(seat_no, bool):
        return None
    key = str(seat_no).strip()
    return key or None


def _require_items(payload: Any, message: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        raise ValidationError(message)
    items = payload.get("items")
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValidationError(message)
    return items


def reconcile(stored: Order, incoming: Order) -> Order:
    """Merge the stored order with the client's latest state; incoming fields win."""
    merged = {**stored, **incoming}
    if "seatNo" in stored:
        merged["seatNo"] = stored["seatNo"]
    return merged


def build_bill(merged: Order, catalog: Catalog, closed_at: datetime) -> Bill:
    """Re-price ``merged`` from the catalog. Client-sent prices and totals are discarded."""
    priced = price_items(merged.get("items") or [], catalog)
    return {
        **merged,
        "items": priced.items,
        "grandTotal": priced.grand_total,
        "closedAt": closed_at.isoformat(),
    }


class OrderLifecycle:
    """
    Applies order transitions against an ``OrderStore``.

    Each mutation reads, changes and flushes the whole active set while
    holding one lock, which keeps seat uniqueness and close idempotence
    intact even if handlers run on several threads. Printing happens outside
    the lock.
    """

    def __init__(
        self,
        store: OrderStore,
        catalog_path: str = CATALOG_PATH,
        catalog_loader: Callable[[], Catalog] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.catalog_path = catalog_path
        self.catalog_loader = catalog_loader or (lambda: load_catalog(catalog_path))
        self.clock = clock
        self._lock = threading.Lock()

    def list_orders(self) -> dict[str, Order]:
        with self._lock:
            return copy.deepcopy(self.store.active_orders)

    def printed_bills(self) -> list[Bill]:
        return self.store.print_queue()

    def product_listing(self) -> list[dict[str, Any]]:
        return load_product_records(self.catalog_path)

    def create_order(self, payload: Any) -> Order:
        """Open a new order for a seat. Existing seats must be updated instead."""
        message = "Request body must be a valid order object with seatNo and items."
        _require_items(payload, message)
        key = seat_key(payload.get("seatNo"))
        if key is None:
            raise ValidationError(message)

        with self._lock:
            if key in self.store.active_orders:
                raise ConflictError(f"Order for seat {key} already exists. Use PUT to update.")
            order = copy.deepcopy(payload)
            self.store.active_orders[key] = order
            self.store.flush()
        logger.info("Order for seat %s created with %d item(s).", key, len(order["items"]))
        return copy.deepcopy(order)

    def update_order(self, seat_no: Any, payload: Any) -> TransitionResult:
        """Replace a seat's order wholesale, or close it when ``closed`` is true."""
        _require_items(payload, "Request body must be a valid order object with an 'items' array.")
        key = seat_key(seat_no)
        if key is None:
            raise ValidationError("A seat number is required.")
        body_key = seat_key(payload.get("seatNo"))
        if body_key is not None and body_key != key:
            raise ValidationError(f"Order body is for seat {body_key}, not seat {key}.")

        if payload.get("closed") is True:
            return self.close_order(key, payload)

        with self._lock:
            if key not in self.store.active_orders:
                raise OrderNotFoundError(f"No active order for seat {key}. Use POST to create one.")
            order = copy.deepcopy(payload)
            order.setdefault("seatNo", self.store.active_orders[key].get("seatNo", key))
            self.store.active_orders[key] = order
            self.store.flush()
        logger.info("Order for seat %s updated.", key)
        return TransitionResult(seat_no=key, message=f"Order for seat {key} updated.", order=copy.deepcopy(order))

    def close_order(self, seat_no: Any, payload: Order | None = None) -> TransitionResult:
        """
        Close a seat into a priced bill and archive it.

        Closing a seat that is not active succeeds without archiving anything,
        so a client retrying a close it never saw acknowledged is harmless.
        """
        key = seat_key(seat_no)
        if key is None:
            raise ValidationError("A seat number is required.")

        with self._lock:
            stored = self.store.active_orders.get(key)
            if stored is None:
                logger.info("Order for seat %s not found in active orders. It might be already closed.", key)
                return TransitionResult(seat_no=key, message=f"Order for seat {key} was already closed or not found.")

            merged = reconcile(stored, copy.deepcopy(payload or {}))
            merged.setdefault("seatNo", key)
            bill = build_bill(merged, self.catalog_loader(), self.clock())
            self.store.archive_bill(key, bill)

        logger.info("Order for seat %s closed and archived with total %s.", key, bill["grandTotal"])
        return TransitionResult(seat_no=key, message=f"Order for seat {key} closed successfully.", bill=bill)

    def dispatch_print(self, bill: Any, sink: ReceiptSink) -> PrintOutcome:
        """Send an archived bill to the receipt sink. Billing state is never touched."""
        if (
            not isinstance(bill, dict)
            or seat_key(bill.get("seatNo")) is None
            or not isinstance(bill.get("items"), list)
            or bill.get("grandTotal") is None
        ):
            raise ValidationError("Invalid bill data provided.")

        outcome = sink.print_bill(bill)
        logger.info("Bill for seat %s dispatched: %s", bill["seatNo"], outcome.value)
        return outcome
