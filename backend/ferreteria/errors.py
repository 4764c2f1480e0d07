"""
Error taxonomy for the sale / inventory core.

Every error aborts the whole unit of work it is raised in. Routes render
them as {"error": kind, "message": ..., "details": {...}} using http_status;
nothing below carries stack information to the client.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base class for errors surfaced to the caller as structured results."""

    kind = "core_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.details,
        }


class InvalidLine(CoreError):
    """Non-positive quantity, malformed price or discount on a line."""
    kind = "invalid_line"
    http_status = 400


class ProductNotFound(InvalidLine):
    """Referenced product does not exist."""
    kind = "product_not_found"
    http_status = 404


class ProductInactive(ProductNotFound):
    """Referenced product exists but is soft-deleted."""
    kind = "product_inactive"
    http_status = 422


class InsufficientStock(CoreError):
    kind = "insufficient_stock"
    http_status = 409

    def __init__(self, *, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name} (available: {available}, requested: {requested})",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )


class InvalidState(CoreError):
    """Operation attempted against a sale not in the required status."""
    kind = "invalid_state"
    http_status = 409


class AlreadyRefunded(InvalidState):
    kind = "already_refunded"


class RefundExceedsSale(CoreError):
    kind = "refund_exceeds_sale"
    http_status = 400


class PersistenceConflict(CoreError):
    """
    The unit of work could not commit (lock timeout, stale version,
    duplicate key, lost connection). Retried by the caller as a whole.
    """
    kind = "persistence_conflict"
    http_status = 409


class SaleNotFound(CoreError):
    kind = "sale_not_found"
    http_status = 404


class CustomerNotFound(CoreError):
    kind = "customer_not_found"
    http_status = 404


class PaymentNotConfirmed(CoreError):
    kind = "payment_not_confirmed"
    http_status = 402


class DuplicateProduct(CoreError):
    """SKU or barcode already used by another product."""
    kind = "duplicate_product"
    http_status = 409
