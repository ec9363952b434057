"""Product catalog loading and lookup."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable

from pos.config import CATALOG_PATH
from pos.models import Product

logger = logging.getLogger(__name__)

ID_FIELD = "pk_key"
NAME_FIELD = "ProductName"
PRICE_FIELD = "ProductPrice"

_PRICE_NOISE = re.compile(r"[\s$,]")
_CENTS = Decimal("0.01")


def parse_price(text: Any) -> Decimal:
    """Parse a display price such as ``"$3.00"`` into a cent-quantized Decimal."""
    if isinstance(text, bool):
        raise ValueError(f"Not a price: {text!r}")
    if isinstance(text, (int, float, Decimal)):
        raw = str(text)
    elif isinstance(text, str):
        raw = _PRICE_NOISE.sub("", text)
    else:
        raise ValueError(f"Not a price: {text!r}")

    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"Not a price: {text!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Not a price: {text!r}")
    return value.quantize(_CENTS)


def load_product_records(path: str | Path = CATALOG_PATH) -> list[dict[str, Any]]:
    """Read the raw product listing. Unreadable listings degrade to an empty list."""
    try:
        with Path(path).open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.error("Error reading product listing %s: %s", path, exc)
        return []
    if not isinstance(data, list):
        logger.error("Product listing %s does not contain a JSON array", path)
        return []
    return [record for record in data if isinstance(record, dict)]


@dataclass(frozen=True)
class Catalog:
    """Read-only product lookup keyed by product id."""

    products: dict[str, Product]

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> Catalog:
        products: dict[str, Product] = {}
        for record in records:
            product_id = record.get(ID_FIELD)
            if product_id is None or product_id == "":
                logger.warning("Skipping catalog record without %s: %r", ID_FIELD, record)
                continue
            try:
                base_price = parse_price(record.get(PRICE_FIELD))
            except ValueError as exc:
                logger.warning("Skipping product %r: %s", product_id, exc)
                continue
            key = str(product_id)
            products[key] = Product(
                product_id=key,
                name=str(record.get(NAME_FIELD) or key),
                base_price=base_price,
            )
        return cls(products=products)

    def resolve(self, product_id: Any) -> Product | None:
        if product_id is None:
            return None
        return self.products.get(str(product_id))

    def __len__(self) -> int:
        return len(self.products)


def load_catalog(path: str | Path = CATALOG_PATH) -> Catalog:
    """Build a fresh catalog from disk. Never raises; a missing listing resolves nothing."""
    return Catalog.from_records(load_product_records(path))
