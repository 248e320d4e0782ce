# Overview: Error taxonomy shared by services and routes.

"""
Stock operation failures.

Every failure carries a machine-readable kind, an HTTP status and optional
details. Services raise these; the application error handler renders them
as {"error": message, "kind": KIND, ...details}.
"""

from __future__ import annotations


class StockError(Exception):
    """Base class for failures surfaced to API callers."""
    kind = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        body.update(self.details)
        return body


class InvalidInputError(StockError):
    """Missing or malformed input. Raised before any write."""
    kind = "INVALID_INPUT"
    status_code = 400


class NotFoundError(StockError):
    kind = "NOT_FOUND"
    status_code = 404


class InsufficientStockError(StockError):
    """Stock-out larger than the quantity on hand."""
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Insufficient stock. Available: {available}, Requested: {requested}",
            details={"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class ConflictError(StockError):
    """Unique-constraint clash or lock/isolation failure. Safe to retry."""
    kind = "CONFLICT"
    status_code = 409


class IntegrityViolationError(StockError):
    """Operation would break a reference that must be kept."""
    kind = "INTEGRITY_VIOLATION"
    status_code = 409
