"""Close-seat confirmation modal screen."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from pos.rendering import format_money


class ConfirmCloseModal(ModalScreen[bool]):
    """Ask before closing a seat into a bill."""

    CSS = """
    ConfirmCloseModal {
        align: center middle;
        background: $background 60%;
    }

    #confirm-dialog {
        width: 48;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #confirm-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #confirm-prompt {
        color: white;
        margin-bottom: 1;
    }

    #confirm-help {
        color: #dddddd;
    }
    """

    def __init__(self, seat_no: str, estimated_total: object) -> None:
        super().__init__()
        self.seat_no = seat_no
        self.estimated_total = estimated_total

    def compose(self) -> ComposeResult:
        with Container(id="confirm-dialog"):
            yield Static(f"Close seat {self.seat_no}", id="confirm-title")
            yield Static(
                f"Bill this seat at current catalog prices (about {format_money(self.estimated_total)})?",
                id="confirm-prompt",
            )
            yield Static("Y/Enter close. N/Esc/q/Ctrl+C cancel.", id="confirm-help")

    def on_key(self, event: Key) -> None:
        if event.key in {"y", "enter"}:
            self.dismiss(True)
            event.stop()
            return

        if event.key in {"n", "escape", "q", "ctrl+c"}:
            self.dismiss(False)
            event.stop()
