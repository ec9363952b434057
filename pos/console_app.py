"""Operator console for active seat orders and the bill print queue."""

from __future__ import annotations

import logging

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.widgets import Header, Static

from pos.confirm_modal import ConfirmCloseModal
from pos.errors import PosError
from pos.lifecycle import OrderLifecycle
from pos.models import Bill
from pos.printer import ReceiptPrinter, check_printer_dependencies
from pos.pricing import price_items
from pos.receipt_modal import ReceiptModal
from pos.rendering import format_bill_row, format_order_summary

logger = logging.getLogger(__name__)

ORDERS_PANE = "orders"
BILLS_PANE = "bills"


class OrderConsoleApp(App):
    """A Textual app for closing seats and dispatching bills to the printer."""

    TITLE = "Seat Orders"
    SUB_TITLE = "Active orders / Print queue"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #orders-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #bills-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #status-bar {
        border: heavy $secondary;
        padding: 0 1;
        height: 4;
    }

    #orders-list, #bills-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    active_pane = reactive(ORDERS_PANE)
    order_selected_index = reactive(None)
    bill_selected_index = reactive(None)

    BINDINGS = [
        ("tab", "switch_pane", "Switch pane"),
        ("enter", "open_selected", "Close seat / View bill"),
        ("p", "print_selected", "Print bill"),
        ("x", "consume_oldest", "Mark oldest printed"),
        ("r", "reload", "Reload"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, lifecycle: OrderLifecycle, printer: ReceiptPrinter | None = None) -> None:
        super().__init__()
        self.lifecycle = lifecycle
        self.printer = printer or ReceiptPrinter()
        self.seats: list[str] = []
        self.bills: list[Bill] = []
        self.system_status = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="orders-pane"):
                yield Static("Active Orders", classes="pane-title")
                yield Static("(no open seats)", id="orders-list")
            with Vertical(id="bills-pane"):
                yield Static("Print Queue", classes="pane-title")
                yield Static("(queue empty)", id="bills-list")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        _, msg = check_printer_dependencies()
        self.system_status = msg
        logger.info("console started printer_status=%r", msg)
        self._reload_data()
        self._refresh_all()

    def on_key(self, event: Key) -> None:
        if isinstance(self.screen, (ConfirmCloseModal, ReceiptModal)):
            return
        if event.key == "j":
            self._move_selection(1)
            event.stop()
        elif event.key == "k":
            self._move_selection(-1)
            event.stop()

    def action_switch_pane(self) -> None:
        self.active_pane = BILLS_PANE if self.active_pane == ORDERS_PANE else ORDERS_PANE
        self._refresh_all()

    def action_reload(self) -> None:
        self.lifecycle.store.reload()
        self._reload_data()
        self._set_status("Reloaded from disk")

    def action_open_selected(self) -> None:
        if self.active_pane == ORDERS_PANE:
            seat_no = self._selected_seat()
            if seat_no is None:
                return
            self.push_screen(
                ConfirmCloseModal(seat_no, self._estimated_total(seat_no)),
                lambda confirmed: self._close_seat(seat_no) if confirmed else None,
            )
            return

        bill = self._selected_bill()
        if bill is None:
            return
        self.push_screen(ReceiptModal(bill), lambda wants_print: self._print_bill(bill) if wants_print else None)

    def action_print_selected(self) -> None:
        bill = self._selected_bill()
        if bill is None:
            self._set_status("Select a bill in the print queue first")
            return
        self._print_bill(bill)

    def action_consume_oldest(self) -> None:
        try:
            bill = self.lifecycle.store.pop_next_bill()
        except PosError as exc:
            self._set_status(str(exc))
            return
        if bill is None:
            self._set_status("Print queue is empty")
            return
        self._reload_data()
        self._set_status(f"Removed bill for seat {bill.get('seatNo')} from the print queue")

    def _close_seat(self, seat_no: str) -> None:
        try:
            result = self.lifecycle.close_order(seat_no)
        except PosError as exc:
            self._set_status(f"Close failed for seat {seat_no}: {exc}")
            return
        self._reload_data()
        self._set_status(result.message)

    @work(thread=True, exclusive=True)
    def _print_bill(self, bill: Bill) -> None:
        try:
            outcome = self.lifecycle.dispatch_print(bill, self.printer)
        except PosError as exc:
            self.call_from_thread(self._set_status, f"Print failed for seat {bill.get('seatNo')}: {exc}")
            return
        self.call_from_thread(self._set_status, outcome.message)

    def _estimated_total(self, seat_no: str) -> object:
        order = self.lifecycle.list_orders().get(seat_no) or {}
        return price_items(order.get("items") or [], self.lifecycle.catalog_loader()).grand_total

    def _reload_data(self) -> None:
        self.seats = list(self.lifecycle.list_orders())
        self.bills = self.lifecycle.printed_bills()
        self.order_selected_index = self._clamp(self.order_selected_index, len(self.seats))
        self.bill_selected_index = self._clamp(self.bill_selected_index, len(self.bills))
        self._refresh_all()

    @staticmethod
    def _clamp(index: int | None, total: int) -> int | None:
        if total == 0:
            return None
        if index is None:
            return 0
        return min(index, total - 1)

    def _move_selection(self, delta: int) -> None:
        if self.active_pane == ORDERS_PANE:
            if self.seats:
                current = self.order_selected_index or 0
                self.order_selected_index = (current + delta) % len(self.seats)
        elif self.bills:
            current = self.bill_selected_index or 0
            self.bill_selected_index = (current + delta) % len(self.bills)
        self._refresh_all()

    def _selected_seat(self) -> str | None:
        if self.order_selected_index is None or not (0 <= self.order_selected_index < len(self.seats)):
            return None
        return self.seats[self.order_selected_index]

    def _selected_bill(self) -> Bill | None:
        if self.bill_selected_index is None or not (0 <= self.bill_selected_index < len(self.bills)):
            return None
        return self.bills[self.bill_selected_index]

    def _set_status(self, message: str) -> None:
        self.system_status = message
        self._refresh_status()

    def _refresh_all(self) -> None:
        self._refresh_orders()
        self._refresh_bills()
        self._refresh_status()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            start = max(0, selected - rows // 2)
            start = min(start, total - rows)

        return (start, start + rows)

    def _render_rows(self, widget: Static, rows: list[Text], selected: int | None, focused: bool) -> None:
        start, end = self._window_bounds(len(rows), self._visible_rows(widget), selected)
        lines = Text(no_wrap=True, overflow="ellipsis")
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            pointer = "➤ " if idx == selected and focused else "  "
            lines.append(pointer)
            lines.append_text(rows[idx])
        if end < len(rows):
            lines.append("\n⋮", style="dim")
        widget.update(lines)

    def _refresh_orders(self) -> None:
        try:
            widget = self.query_one("#orders-list", Static)
        except NoMatches:
            return
        if not self.seats:
            widget.update("(no open seats)")
            return
        orders = self.lifecycle.list_orders()
        rows = [format_order_summary(orders.get(seat_no, {"seatNo": seat_no})) for seat_no in self.seats]
        self._render_rows(widget, rows, self.order_selected_index, self.active_pane == ORDERS_PANE)

    def _refresh_bills(self) -> None:
        try:
            widget = self.query_one("#bills-list", Static)
        except NoMatches:
            return
        if not self.bills:
            widget.update("(queue empty)")
            return
        rows = [format_bill_row(bill) for bill in self.bills]
        self._render_rows(widget, rows, self.bill_selected_index, self.active_pane == BILLS_PANE)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        pane = "orders" if self.active_pane == ORDERS_PANE else "print queue"
        text = Text()
        text.append(f"{pane.upper()}", style="bold")
        text.append(": Tab switch, J/K move, Enter close/view, P print, X mark printed, R reload.\n")
        text.append(self.system_status or "Ready")
        bar.update(text)
