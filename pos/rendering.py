"""Rendering helpers shared by the console and the receipt printer."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from rich.text import Text

from pos.models import SMALL_SIZE, Bill, Order


def format_money(value: Any) -> str:
    """Format a price as ``$1.50``. Missing or non-numeric values print as zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        value = 0
    return f"${value:.2f}"


def size_badge_style(size: Any) -> str:
    """Return a consistent badge style for size tags."""
    if size == SMALL_SIZE:
        return "bold #0b1f0f on #5fbf72"
    return "bold #ffffff on #2f6db5"


def item_display_name(item: dict[str, Any]) -> str:
    return str(item.get("productName") or item.get("productId") or "Unknown Product")


def format_item_label(item: dict[str, Any]) -> Text:
    """Render a line item with quantity and a colored size tag."""
    text = Text()
    text.append(f"{item.get('quantity', '?')} x {item_display_name(item)}")
    size = item.get("size")
    if size:
        text.append(" ")
        text.append(f" {str(size)[0].upper()} ", style=size_badge_style(size))
    if item.get("instructions"):
        text.append(f"  ({item['instructions']})", style="italic dim")
    return text


def format_order_summary(order: Order, estimated_total: Any = None) -> Text:
    """Render an active order on one line: seat header, then its items comma separated."""
    items = order.get("items") or []
    text = Text(no_wrap=True, overflow="ellipsis")
    text.append(f"Seat {order.get('seatNo', '?')}", style="bold")
    text.append(f"  {len(items)} item(s)", style="dim")
    if estimated_total is not None:
        text.append(f"  ~{format_money(estimated_total)}", style="dim")
    for index, item in enumerate(items):
        text.append("  " if index == 0 else ", ")
        text.append_text(format_item_label(item))
    return text


def format_bill_row(bill: Bill) -> Text:
    text = Text()
    text.append(f"Seat {bill.get('seatNo', '?')}", style="bold")
    text.append(f"  {format_money(bill.get('grandTotal'))}")
    closed_at = bill.get("closedAt")
    if closed_at:
        text.append(f"  {str(closed_at)[:16].replace('T', ' ')}", style="dim")
    return text
