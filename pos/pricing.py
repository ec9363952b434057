"""Server-side pricing of order line items."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable

from pos.catalog import Catalog
from pos.models import SMALL_SIZE, UNKNOWN_PRODUCT_NAME, ZERO, PricedOrder, Product

logger = logging.getLogger(__name__)

# Any size other than Small is charged at the upper tier.
LARGE_MULTIPLIER = Decimal(2)


def unit_price_for(product: Product, size: Any) -> Decimal:
    if size == SMALL_SIZE:
        return product.base_price
    return product.base_price * LARGE_MULTIPLIER


def _quantity(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (float, Decimal)):
        try:
            whole = int(value)
        except (OverflowError, ValueError):
            return None
        if whole != value:
            return None
        value = whole
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return None
    return quantity if quantity > 0 else None


def price_item(item: dict[str, Any], catalog: Catalog) -> dict[str, Any]:
    """Return a copy of ``item`` with productName, unitPrice and itemTotal set."""
    product = catalog.resolve(item.get("productId"))
    if product is None:
        return {
            **item,
            "productName": UNKNOWN_PRODUCT_NAME,
            "unitPrice": ZERO,
            "itemTotal": ZERO,
        }

    unit_price = unit_price_for(product, item.get("size"))
    quantity = _quantity(item.get("quantity"))
    if quantity is None:
        logger.warning(
            "Invalid quantity %r for product %s; line priced at zero",
            item.get("quantity"),
            product.product_id,
        )
        item_total = ZERO
    else:
        item_total = unit_price * quantity

    return {
        **item,
        "productName": product.name,
        "unitPrice": unit_price,
        "itemTotal": item_total,
    }


def price_items(items: Iterable[dict[str, Any]], catalog: Catalog) -> PricedOrder:
    """Price every line in input order and sum the grand total."""
    priced: list[dict[str, Any]] = []
    grand_total = ZERO
    for item in items:
        line = price_item(item, catalog)
        grand_total += line["itemTotal"]
        priced.append(line)
    return PricedOrder(items=priced, grand_total=grand_total)
