"""Error taxonomy for order, storage and printing failures."""

from __future__ import annotations


class PosError(Exception):
    """Base error. ``http_status`` is the status the routing layer answers with."""

    http_status = 500


class ValidationError(PosError, ValueError):
    """Missing or malformed request fields. No state was changed."""

    http_status = 400


class ConflictError(PosError):
    """An active order already exists for the seat."""

    http_status = 409


class OrderNotFoundError(PosError, LookupError):
    """Non-closing update for a seat with no active order."""

    http_status = 404


class StorageError(PosError):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class SinkError(PosError):
    pass


class SinkUnavailableError(SinkError):
    """No printing device reachable. Handled by falling back to a simulated print."""

    http_status = 503


class SinkIOError(SinkError):
    """Device present but opening or writing to it failed."""
