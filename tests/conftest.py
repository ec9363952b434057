from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from pos.lifecycle import OrderLifecycle
from pos.models import PrintOutcome
from pos.persistence import OrderStore

CLOSED_AT = datetime(2026, 10, 16, 18, 30, tzinfo=timezone.utc)

PRODUCTS = [
    {"pk_key": "espresso", "ProductName": "Espresso", "ProductPrice": "$3.00"},
    {"pk_key": "latte", "ProductName": "Caffe Latte", "ProductPrice": "$4.50"},
    {"pk_key": "croissant", "ProductName": "Butter Croissant", "ProductPrice": "$2.95"},
]


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "ProductListing.json"
    path.write_text(json.dumps(PRODUCTS), encoding="utf-8")
    return str(path)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "pos.db"


@pytest.fixture
def store(db_path):
    return OrderStore(db_path)


@pytest.fixture
def lifecycle(store, catalog_path):
    return OrderLifecycle(store, catalog_path=catalog_path, clock=lambda: CLOSED_AT)


class RecordingSink:
    def __init__(self, outcome=PrintOutcome.PRINTED, error=None):
        self.outcome = outcome
        self.error = error
        self.bills = []

    def print_bill(self, bill):
        self.bills.append(bill)
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def sink():
    return RecordingSink()
