"""Receipt preview modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Static

from pos.models import Bill
from pos.printer import format_receipt_lines


class ReceiptModal(ModalScreen[bool]):
    """Centered modal showing a bill as it will be printed. Dismisses True to print."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("p", "print", "Print"),
    ]

    CSS = """
    ReceiptModal {
        align: center middle;
        background: $background 60%;
    }

    #receipt-dialog {
        width: 40;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #receipt-body {
        color: white;
    }

    #receipt-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    def __init__(self, bill: Bill) -> None:
        super().__init__()
        self.bill = bill

    def compose(self) -> ComposeResult:
        with Container(id="receipt-dialog"):
            yield Static(id="receipt-body")
            yield Static("P print, Esc/q/Ctrl+C close", id="receipt-help")

    def on_mount(self) -> None:
        body = Text("\n".join(format_receipt_lines(self.bill)), style="white", no_wrap=True)
        self.query_one("#receipt-body", Static).update(body)

    def action_close(self) -> None:
        self.dismiss(False)

    def action_print(self) -> None:
        self.dismiss(True)
