"""SQLite persistence for active seat orders and archived bills."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from pos.config import DB_PATH
from pos.errors import StorageReadError, StorageWriteError
from pos.models import Bill, Order

logger = logging.getLogger(__name__)

PRINT_QUEUE_TABLE = "bill_print_queue"
BACKUP_LOG_TABLE = "bill_backup_log"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return json.dumps(payload, default=_json_default)


def loads(payload: str) -> Any:
    """Decode a stored payload. Numbers with a fraction come back as Decimal so money sums exactly."""
    return json.loads(payload, parse_float=Decimal)


def _connect(db_path: str | Path) -> sqlite3.Connection:
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(db_file)


def bootstrap_schema(db_path: str | Path = DB_PATH) -> None:
    """Create persistence schema if it does not already exist."""
    with _connect(db_path) as conn:
        conn.executescript(
            f"""
            CREATE TABLE IF NOT EXISTS active_orders (
                seat_no TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS {PRINT_QUEUE_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seat_no TEXT NOT NULL,
                payload TEXT NOT NULL,
                archived_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS {BACKUP_LOG_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seat_no TEXT NOT NULL,
                payload TEXT NOT NULL,
                archived_at TEXT NOT NULL
            );
            """
        )
    conn.close()


class OrderStore:
    """
    Owner of the active-order set and the two bill archives.

    The active set lives in memory and is written back wholesale after every
    transition. Bills are append-only: the print queue is consumed FIFO, the
    backup log is never trimmed.
    """

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = Path(db_path)
        try:
            bootstrap_schema(self.db_path)
        except sqlite3.Error as exc:
            logger.error("%s", StorageReadError(f"Could not open order database {self.db_path}: {exc}"))
        self.active_orders: dict[str, Order] = self._read_active_orders()

    def reload(self) -> None:
        self.active_orders = self._read_active_orders()

    def _read_active_orders(self) -> dict[str, Order]:
        try:
            conn = _connect(self.db_path)
            try:
                rows = conn.execute("SELECT seat_no, payload FROM active_orders ORDER BY rowid").fetchall()
            finally:
                conn.close()
            return {seat_no: loads(payload) for seat_no, payload in rows}
        except (sqlite3.Error, ValueError) as exc:
            logger.error("%s", StorageReadError(f"Error reading active orders from {self.db_path}: {exc}"))
            return {}

    def _read_bills(self, table: str) -> list[Bill]:
        try:
            conn = _connect(self.db_path)
            try:
                rows = conn.execute(f"SELECT payload FROM {table} ORDER BY id").fetchall()
            finally:
                conn.close()
            return [loads(payload) for (payload,) in rows]
        except (sqlite3.Error, ValueError) as exc:
            logger.error("%s", StorageReadError(f"Error reading {table} from {self.db_path}: {exc}"))
            return []

    @staticmethod
    def _replace_active(conn: sqlite3.Connection, orders: dict[str, Order]) -> None:
        now = _utc_now_iso()
        conn.execute("DELETE FROM active_orders")
        conn.executemany(
            "INSERT INTO active_orders (seat_no, payload, updated_at) VALUES (?, ?, ?)",
            [(seat_no, dumps(order), now) for seat_no, order in orders.items()],
        )

    def flush(self) -> bool:
        """Persist the whole in-memory active set. Failures are logged, not raised."""
        try:
            conn = _connect(self.db_path)
            try:
                with conn:
                    self._replace_active(conn, self.active_orders)
            finally:
                conn.close()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("%s", StorageWriteError(f"Error writing active orders to {self.db_path}: {exc}"))
            return False
        return True

    def archive_bill(self, seat_no: str, bill: Bill) -> None:
        """
        Append ``bill`` to both archives and release the seat in one transaction.

        The seat leaves the in-memory set only after the commit succeeds, so a
        failed archive keeps the order active and a retried close archives once.
        """
        remaining = {key: order for key, order in self.active_orders.items() if key != seat_no}
        archived_at = _utc_now_iso()
        try:
            payload = dumps(bill)
            conn = _connect(self.db_path)
            try:
                with conn:
                    for table in (PRINT_QUEUE_TABLE, BACKUP_LOG_TABLE):
                        conn.execute(
                            f"INSERT INTO {table} (seat_no, payload, archived_at) VALUES (?, ?, ?)",
                            (seat_no, payload, archived_at),
                        )
                    self._replace_active(conn, remaining)
            finally:
                conn.close()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            error = StorageWriteError(f"Could not archive bill for seat {seat_no}: {exc}")
            logger.error("%s", error)
            raise error from exc
        self.active_orders = remaining

    def print_queue(self) -> list[Bill]:
        return self._read_bills(PRINT_QUEUE_TABLE)

    def backup_log(self) -> list[Bill]:
        return self._read_bills(BACKUP_LOG_TABLE)

    def pop_next_bill(self) -> Bill | None:
        """Remove and return the oldest bill waiting in the print queue."""
        try:
            conn = _connect(self.db_path)
            try:
                with conn:
                    row = conn.execute(f"SELECT id, payload FROM {PRINT_QUEUE_TABLE} ORDER BY id LIMIT 1").fetchone()
                    if row is None:
                        return None
                    conn.execute(f"DELETE FROM {PRINT_QUEUE_TABLE} WHERE id = ?", (row[0],))
            finally:
                conn.close()
            return loads(row[1])
        except (sqlite3.Error, ValueError) as exc:
            error = StorageWriteError(f"Could not consume print queue in {self.db_path}: {exc}")
            logger.error("%s", error)
            raise error from exc

    def clear_print_queue(self) -> int:
        """Empty the print queue, keeping the backup log. Returns rows removed."""
        try:
            conn = _connect(self.db_path)
            try:
                with conn:
                    cur = conn.execute(f"DELETE FROM {PRINT_QUEUE_TABLE}")
            finally:
                conn.close()
        except sqlite3.Error as exc:
            error = StorageWriteError(f"Could not clear print queue in {self.db_path}: {exc}")
            logger.error("%s", error)
            raise error from exc
        return cur.rowcount
