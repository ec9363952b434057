from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import CLOSED_AT, RecordingSink
from pos.errors import ConflictError, OrderNotFoundError, SinkIOError, StorageWriteError, ValidationError
from pos.lifecycle import OrderLifecycle, reconcile
from pos.models import PrintOutcome
from pos.persistence import OrderStore


def espresso_order(seat_no=5, size="Small", quantity=2, **extra):
    return {
        "seatNo": seat_no,
        "items": [{"productId": "espresso", "size": size, "quantity": quantity}],
        **extra,
    }


def test_create_stores_order_under_seat(lifecycle, store):
    created = lifecycle.create_order(espresso_order())

    assert created["seatNo"] == 5
    assert lifecycle.list_orders() == {"5": espresso_order()}
    assert OrderStore(store.db_path).active_orders == {"5": espresso_order()}


def test_create_twice_for_same_seat_conflicts(lifecycle):
    lifecycle.create_order(espresso_order())

    with pytest.raises(ConflictError):
        lifecycle.create_order(espresso_order(quantity=9))

    orders = lifecycle.list_orders()
    assert len(orders) == 1
    assert orders["5"]["items"][0]["quantity"] == 2


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"items": []},
        {"seatNo": "", "items": []},
        {"seatNo": "   ", "items": []},
        {"seatNo": 3},
        {"seatNo": 3, "items": "espresso"},
        {"seatNo": 3, "items": ["espresso"]},
    ],
)
def test_create_requires_seat_and_items(lifecycle, payload):
    with pytest.raises(ValidationError):
        lifecycle.create_order(payload)

    assert lifecycle.list_orders() == {}


def test_create_accepts_empty_item_list(lifecycle):
    lifecycle.create_order({"seatNo": "A1", "items": []})

    assert "A1" in lifecycle.list_orders()


def test_returned_order_is_detached_from_store(lifecycle):
    created = lifecycle.create_order(espresso_order())
    created["items"].clear()

    assert lifecycle.list_orders()["5"]["items"]


def test_update_replaces_order_wholesale(lifecycle):
    lifecycle.create_order(espresso_order(note="window seat"))

    result = lifecycle.update_order("5", espresso_order(quantity=4))

    assert result.closed is False
    assert result.order["items"][0]["quantity"] == 4
    assert lifecycle.list_orders()["5"] == espresso_order(quantity=4)


def test_update_without_seat_in_body_keeps_seat(lifecycle):
    lifecycle.create_order(espresso_order())

    lifecycle.update_order("5", {"items": []})

    assert lifecycle.list_orders()["5"] == {"items": [], "seatNo": 5}


def test_update_of_absent_seat_never_creates_order(lifecycle):
    with pytest.raises(OrderNotFoundError):
        lifecycle.update_order("8", espresso_order(seat_no=8))

    assert lifecycle.list_orders() == {}


def test_update_requires_items(lifecycle):
    lifecycle.create_order(espresso_order())

    with pytest.raises(ValidationError):
        lifecycle.update_order("5", {"seatNo": 5, "closed": True})

    assert "5" in lifecycle.list_orders()


def test_update_rejects_body_for_another_seat(lifecycle):
    lifecycle.create_order(espresso_order())

    with pytest.raises(ValidationError):
        lifecycle.update_order("5", espresso_order(seat_no=6))


def test_close_archives_priced_bill_and_releases_seat(lifecycle, store):
    lifecycle.create_order(espresso_order())

    result = lifecycle.update_order("5", espresso_order(closed=True))

    assert result.closed
    assert result.message == "Order for seat 5 closed successfully."
    bill = result.bill
    assert bill["items"][0]["unitPrice"] == Decimal("3.00")
    assert bill["items"][0]["itemTotal"] == Decimal("6.00")
    assert bill["grandTotal"] == Decimal("6.00")
    assert bill["closedAt"] == CLOSED_AT.isoformat()
    assert lifecycle.list_orders() == {}
    assert len(store.print_queue()) == 1
    assert len(store.backup_log()) == 1
    assert store.print_queue()[0]["grandTotal"] == Decimal("6.00")
    assert store.backup_log() == store.print_queue()


def test_close_large_item_is_double_small(lifecycle):
    lifecycle.create_order(espresso_order(size="Large"))

    bill = lifecycle.update_order("5", espresso_order(size="Large", closed=True)).bill

    assert bill["items"][0]["unitPrice"] == Decimal("6.00")
    assert bill["items"][0]["itemTotal"] == Decimal("12.00")
    assert bill["grandTotal"] == Decimal("12.00")


def test_retried_close_is_success_without_second_bill(lifecycle, store):
    lifecycle.create_order(espresso_order())
    lifecycle.update_order("5", espresso_order(closed=True))

    retry = lifecycle.update_order("5", espresso_order(closed=True))

    assert retry.closed is False
    assert retry.message == "Order for seat 5 was already closed or not found."
    assert len(store.print_queue()) == 1
    assert len(store.backup_log()) == 1


def test_close_of_never_opened_seat_is_not_an_error(lifecycle, store):
    result = lifecycle.close_order("12")

    assert "already closed or not found" in result.message
    assert store.backup_log() == []


def test_close_discards_client_prices(lifecycle):
    lifecycle.create_order(espresso_order())
    tampered = {
        "seatNo": 5,
        "closed": True,
        "grandTotal": 0.01,
        "items": [
            {"productId": "espresso", "size": "Small", "quantity": 2, "unitPrice": 0.01, "itemTotal": 0.02},
        ],
    }

    bill = lifecycle.update_order("5", tampered).bill

    assert bill["items"][0]["itemTotal"] == Decimal("6.00")
    assert bill["grandTotal"] == Decimal("6.00")


def test_close_uses_client_item_state_and_keeps_stored_fields(lifecycle):
    lifecycle.create_order(espresso_order(server="Sam"))
    final_state = {
        "seatNo": 5,
        "closed": True,
        "items": [
            {"productId": "latte", "size": "Large", "quantity": 1, "served": True},
            {"productId": "ghost", "size": "Small", "quantity": 1, "cancelled": True},
            {"productId": "croissant", "size": "Small", "quantity": 2, "instructions": "warm"},
        ],
    }

    bill = lifecycle.update_order("5", final_state).bill

    assert bill["server"] == "Sam"
    assert bill["closed"] is True
    assert [item["productId"] for item in bill["items"]] == ["latte", "ghost", "croissant"]
    assert bill["items"][0]["served"] is True
    assert bill["items"][1]["productName"] == "Unknown Product"
    assert bill["items"][2]["instructions"] == "warm"
    assert bill["grandTotal"] == Decimal("14.90")
    assert bill["grandTotal"] == sum(item["itemTotal"] for item in bill["items"])


def test_close_from_console_uses_stored_state(lifecycle):
    lifecycle.create_order(espresso_order())

    result = lifecycle.close_order(5)

    assert result.bill["grandTotal"] == Decimal("6.00")
    assert result.bill["seatNo"] == 5


def test_close_prices_against_fresh_catalog(store, tmp_path):
    catalogs = []

    def loader():
        from pos.catalog import Catalog

        catalogs.append(1)
        return Catalog.from_records([{"pk_key": "espresso", "ProductName": "Espresso", "ProductPrice": "$3.00"}])

    lifecycle = OrderLifecycle(store, catalog_loader=loader, clock=lambda: CLOSED_AT)
    lifecycle.create_order(espresso_order(seat_no=1))
    lifecycle.create_order(espresso_order(seat_no=2))
    lifecycle.close_order(1)
    lifecycle.close_order(2)

    assert len(catalogs) == 2


def test_archived_total_matches_sum_of_lines(store):
    from pos.catalog import Catalog

    catalog = Catalog.from_records(
        [
            {"pk_key": "tea", "ProductName": "Green Tea", "ProductPrice": "$1.10"},
            {"pk_key": "scone", "ProductName": "Scone", "ProductPrice": "$2.20"},
        ]
    )
    lifecycle = OrderLifecycle(store, catalog_loader=lambda: catalog, clock=lambda: CLOSED_AT)
    lifecycle.create_order(
        {
            "seatNo": 3,
            "items": [
                {"productId": "tea", "size": "Small", "quantity": 1},
                {"productId": "scone", "size": "Small", "quantity": 1},
            ],
        }
    )

    result = lifecycle.close_order(3)
    archived = lifecycle.printed_bills()[0]

    assert archived["grandTotal"] == sum(item["itemTotal"] for item in archived["items"])
    assert archived["grandTotal"] == Decimal("3.30")
    assert isinstance(archived["grandTotal"], Decimal)
    assert archived["grandTotal"] == result.bill["grandTotal"]


def test_close_with_missing_catalog_bills_zero(store, tmp_path):
    lifecycle = OrderLifecycle(store, catalog_path=str(tmp_path / "missing.json"), clock=lambda: CLOSED_AT)
    lifecycle.create_order(espresso_order())

    bill = lifecycle.close_order("5").bill

    assert bill["grandTotal"] == 0
    assert bill["items"][0]["productName"] == "Unknown Product"


def test_failed_archive_keeps_order_active(lifecycle, store, monkeypatch):
    lifecycle.create_order(espresso_order())

    def broken_archive(seat_no, bill):
        raise StorageWriteError("disk full")

    monkeypatch.setattr(store, "archive_bill", broken_archive)

    with pytest.raises(StorageWriteError):
        lifecycle.update_order("5", espresso_order(closed=True))

    assert "5" in lifecycle.list_orders()


def test_failed_flush_still_answers_with_in_memory_result(lifecycle, store, monkeypatch):
    monkeypatch.setattr(store, "flush", lambda: False)

    created = lifecycle.create_order(espresso_order())

    assert created["seatNo"] == 5
    assert "5" in lifecycle.list_orders()


def test_reconcile_prefers_incoming_fields_and_stored_seat():
    merged = reconcile(
        {"seatNo": 5, "items": [], "server": "Sam", "status": "open"},
        {"seatNo": "5", "items": [{"productId": "latte"}], "status": "closing"},
    )

    assert merged == {"seatNo": 5, "items": [{"productId": "latte"}], "server": "Sam", "status": "closing"}


def test_dispatch_print_hands_bill_to_sink(lifecycle, store, sink):
    lifecycle.create_order(espresso_order())
    lifecycle.close_order(5)
    bill = lifecycle.printed_bills()[0]

    outcome = lifecycle.dispatch_print(bill, sink)

    assert outcome is PrintOutcome.PRINTED
    assert sink.bills == [bill]
    assert len(store.print_queue()) == 1
    assert len(store.backup_log()) == 1


def test_dispatch_print_accepts_zero_total(lifecycle, sink):
    outcome = lifecycle.dispatch_print({"seatNo": 3, "items": [], "grandTotal": 0}, sink)

    assert outcome is PrintOutcome.PRINTED


@pytest.mark.parametrize(
    "bill",
    [
        None,
        {"items": [], "grandTotal": 1.0},
        {"seatNo": 3, "grandTotal": 1.0},
        {"seatNo": 3, "items": []},
        {"seatNo": 3, "items": [], "grandTotal": None},
    ],
)
def test_dispatch_print_rejects_incomplete_bills(lifecycle, sink, bill):
    with pytest.raises(ValidationError):
        lifecycle.dispatch_print(bill, sink)

    assert sink.bills == []


def test_sink_failure_does_not_touch_archive(lifecycle, store):
    lifecycle.create_order(espresso_order())
    lifecycle.close_order(5)
    failing = RecordingSink(error=SinkIOError("Could not connect to the printer."))

    with pytest.raises(SinkIOError):
        lifecycle.dispatch_print(lifecycle.printed_bills()[0], failing)

    assert len(store.print_queue()) == 1
    assert lifecycle.list_orders() == {}


def test_product_listing_reads_catalog(lifecycle):
    assert [record["pk_key"] for record in lifecycle.product_listing()] == ["espresso", "latte", "croissant"]
