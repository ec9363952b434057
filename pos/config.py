"""Runtime configuration defaults for persistence, catalog and printing."""

from __future__ import annotations

import os

DB_PATH = os.environ.get("POS_DB_PATH", "data/pos.db")
CATALOG_PATH = os.environ.get("POS_CATALOG_PATH", "data/ProductListing.json")
LOG_PATH = os.environ.get("POS_LOG_PATH", "data/pos.log")

VENUE_NAME = "The Coffee House"
RECEIPT_WIDTH_CHARS = 32

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 20
PRINTER_FONT_PATH = "/System/Library/Fonts/Menlo.ttc"
PRINTER_LEFT_INDENT_PX = 4
PRINTER_TAIL_SPACER_PX = 70
