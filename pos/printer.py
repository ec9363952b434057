"""Receipt printing on a USB thermal printer, with a logged simulation fallback."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from escpos.exceptions import DeviceNotFoundError
from escpos.printer import Usb
from PIL import Image, ImageDraw, ImageFont
from usb.core import NoBackendError

from pos.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_TAIL_SPACER_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
    RECEIPT_WIDTH_CHARS,
    VENUE_NAME,
)
from pos.errors import SinkIOError, SinkUnavailableError
from pos.models import SMALL_SIZE, Bill, PrintOutcome
from pos.rendering import format_money, item_display_name

logger = logging.getLogger(__name__)

_LINE_EXTRA_PX = 8
_FONT_OVERRIDE_ENV = "RECEIPT_PRINTER_FONT_PATH"
# Receipt columns only line up with a monospace face.
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
)


def _rule(char: str) -> str:
    return char * RECEIPT_WIDTH_CHARS


def _format_closed_at(value: Any) -> str:
    if not value:
        return "-"
    try:
        closed_at = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    if closed_at.tzinfo is not None:
        closed_at = closed_at.astimezone()
    return closed_at.strftime("%Y-%m-%d %H:%M")


def format_receipt_lines(bill: Bill) -> list[str]:
    """Lay out a bill as fixed-width receipt lines."""
    lines = [
        VENUE_NAME,
        _rule("="),
        f"Seat: {bill.get('seatNo')}",
        f"Date: {_format_closed_at(bill.get('closedAt'))}",
        _rule("-"),
        "Item(s)              Qty   Total",
        _rule("-"),
    ]
    for item in bill.get("items") or []:
        name = item_display_name(item)
        quantity = str(item.get("quantity", ""))
        total = format_money(item.get("itemTotal"))
        lines.append(f"{name:<20.20} {quantity:>3} {total:>7}")
        size = item.get("size")
        if size and size != SMALL_SIZE:
            lines.append(f"  - Size: {size}")
        if item.get("instructions"):
            lines.append(f"  - Notes: {item['instructions']}")
    lines.extend(
        [
            _rule("-"),
            f"Grand Total: {format_money(bill.get('grandTotal')):>18}",
            _rule("="),
            "Thank you for your visit!",
        ]
    )
    return lines


def resolve_printer_font_path() -> str:
    """
    Resolve a printer font path.

    Resolution order:
    1. RECEIPT_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux monospace fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def _load_font() -> Any:
    return ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether a receipt font is available for rendering."""
    try:
        _load_font()
    except (OSError, RuntimeError) as exc:
        return (False, f"Printer font unavailable: {exc}")
    return (True, "Printer ready")


def _render_line(text: str, font: Any) -> Image.Image:
    canvas_height = PRINTER_FONT_SIZE + _LINE_EXTRA_PX
    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)

    bbox = draw.textbbox((0, 0), text or " ", font=font)
    text_height = bbox[3] - bbox[1]
    # Offset by bbox top so descenders are not clipped.
    y = (canvas_height - text_height) // 2 - bbox[1]
    draw.text((PRINTER_LEFT_INDENT_PX, y), text, font=font, fill=0)
    return img


def _render_spacer(height_px: int) -> Image.Image:
    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


class ReceiptPrinter:
    """Receipt sink for finalized bills. Never modifies the bill it is given."""

    def __init__(self, vendor_id: int = PRINTER_USB_VENDOR_ID, product_id: int = PRINTER_USB_PRODUCT_ID) -> None:
        self.vendor_id = vendor_id
        self.product_id = product_id

    def _open(self) -> Usb:
        try:
            printer = Usb(self.vendor_id, self.product_id)
            printer.open()
        except DeviceNotFoundError as exc:
            raise SinkUnavailableError(f"No USB thermal printer found: {exc}") from exc
        except NoBackendError as exc:
            raise SinkUnavailableError(f"No USB backend available to reach a printer: {exc}") from exc
        except Exception as exc:
            raise SinkIOError(f"Could not connect to the printer: {exc}") from exc
        return printer

    def print_bill(self, bill: Bill) -> PrintOutcome:
        lines = format_receipt_lines(bill)
        try:
            printer = self._open()
        except SinkUnavailableError as exc:
            logger.warning("%s. Simulating print to log.", exc)
            self.simulate(lines)
            return PrintOutcome.SIMULATED

        try:
            font = _load_font()
            for line in lines:
                printer.image(_render_line(line, font))
            printer.image(_render_spacer(PRINTER_TAIL_SPACER_PX))
            printer.cut()
        except Exception as exc:
            logger.error("Printing error for seat %s: %s", bill.get("seatNo"), exc)
            raise SinkIOError(f"An error occurred during printing: {exc}") from exc
        finally:
            printer.close()
        return PrintOutcome.PRINTED

    def simulate(self, lines: list[str]) -> None:
        logger.warning("--- SIMULATED PRINTER OUTPUT ---")
        for line in lines:
            logger.warning("%s", line)
