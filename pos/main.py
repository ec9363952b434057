"""Entry point for the seat order console."""

from __future__ import annotations

import logging
from pathlib import Path

from pos.config import CATALOG_PATH, DB_PATH, LOG_PATH
from pos.console_app import OrderConsoleApp
from pos.lifecycle import OrderLifecycle
from pos.persistence import OrderStore
from pos.printer import ReceiptPrinter


def configure_logging(log_path: str | Path = LOG_PATH, level: int = logging.INFO) -> None:
    """Send logs to a file; the terminal belongs to the Textual UI."""
    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_lifecycle(db_path: str | Path = DB_PATH, catalog_path: str = CATALOG_PATH) -> OrderLifecycle:
    return OrderLifecycle(OrderStore(db_path), catalog_path=catalog_path)


def main() -> None:
    """Run the Textual application."""
    configure_logging()
    OrderConsoleApp(build_lifecycle(), ReceiptPrinter()).run()


if __name__ == "__main__":
    main()
