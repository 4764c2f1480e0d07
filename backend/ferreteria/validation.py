"""
Request structs for the sale / inventory core.

Each operation gets an explicit, frozen input type built from the JSON
payload at the HTTP boundary. Shape problems (missing keys, wrong types,
negative quantities) raise ValidationError here, before any service code
runs; business rules (stock, state, pricing policy) stay in the services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models.sales import PAYMENT_METHODS


# Maximum amount per field: 999,999,999 (integer currency units)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def _coerce_int(key: str, value: Any) -> int:
    # Strict: reject bools, floats, decimals and scientific notation
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _int_field(
    payload: dict,
    key: str,
    *,
    required: bool = True,
    minimum: int | None = None,
    maximum: int | None = MAX_AMOUNT,
    default: int | None = None,
    aliases: tuple[str, ...] = (),
) -> int | None:
    raw = None
    found = False
    for name in (key, *aliases):
        if name in payload:
            raw = payload[name]
            found = True
            break

    if not found or raw is None:
        if required:
            raise ValidationError(f"{key} is required")
        return default

    value = _coerce_int(key, raw)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}")
    return value


def _str_field(payload: dict, key: str, *, required: bool = False, max_length: int = 255) -> str | None:
    raw = payload.get(key)
    if raw is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    value = str(raw).strip()
    if not value:
        if required:
            raise ValidationError(f"{key} cannot be blank")
        return None
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value


def _bool_field(payload: dict, key: str, *, default: bool) -> bool:
    raw = payload.get(key)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ValidationError(f"{key} must be a boolean")
    return raw


def _object(payload: Any, what: str = "payload") -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid JSON {what}")
    return payload


def _list_field(payload: dict, key: str, *, required: bool) -> list | None:
    raw = payload.get(key)
    if raw is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(raw, list):
        raise ValidationError(f"{key} must be a list")
    if required and not raw:
        raise ValidationError(f"{key} must contain at least one entry")
    return raw


# =============================================================================
# SALES
# =============================================================================

@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    quantity: int
    unit_price: int | None = None
    discount: int = 0

    @classmethod
    def from_dict(cls, payload: Any) -> "SaleItemInput":
        payload = _object(payload, "item")
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1, aliases=("product",)),
            quantity=_int_field(payload, "quantity", minimum=1),
            unit_price=_int_field(payload, "unit_price", required=False, minimum=0),
            discount=_int_field(payload, "discount", required=False, minimum=0, default=0),
        )


def _items(payload: dict, key: str = "items") -> tuple[SaleItemInput, ...]:
    raw = _list_field(payload, key, required=True)
    return tuple(SaleItemInput.from_dict(entry) for entry in raw)


@dataclass(frozen=True)
class CreateSaleRequest:
    items: tuple[SaleItemInput, ...]
    payment_method: str
    customer_id: int | None = None
    payment_details: dict = field(default_factory=dict)
    notes: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "CreateSaleRequest":
        payload = _object(payload)
        payment_method = _str_field(payload, "payment_method", required=True, max_length=16)
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}"
            )
        details = payload.get("payment_details") or {}
        if not isinstance(details, dict):
            raise ValidationError("payment_details must be an object")
        return cls(
            items=_items(payload),
            payment_method=payment_method,
            customer_id=_int_field(payload, "customer_id", required=False, minimum=1, aliases=("customer",)),
            payment_details=details,
            notes=_str_field(payload, "notes", max_length=500),
        )


@dataclass(frozen=True)
class RefundItemInput:
    product_id: int
    quantity: int

    @classmethod
    def from_dict(cls, payload: Any) -> "RefundItemInput":
        payload = _object(payload, "item")
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1, aliases=("product",)),
            quantity=_int_field(payload, "quantity", minimum=1),
        )


@dataclass(frozen=True)
class RefundSaleRequest:
    """
    items=None means "whole sale". restock controls whether that implicit
    full refund walks every line back into stock (True) or is a
    financial-only refund that leaves stock untouched (False).
    restock is ignored when items are given: listed items always restock.
    """
    refund_reason: str
    refund_amount: int | None = None
    items: tuple[RefundItemInput, ...] | None = None
    restock: bool = True

    @classmethod
    def from_dict(cls, payload: Any) -> "RefundSaleRequest":
        payload = _object(payload)
        raw_items = _list_field(payload, "items", required=False)
        if raw_items is not None and not raw_items:
            raise ValidationError("items must contain at least one entry; omit it to refund the whole sale")
        items = tuple(RefundItemInput.from_dict(entry) for entry in raw_items) if raw_items else None
        return cls(
            refund_reason=_str_field(payload, "refund_reason", required=True),
            refund_amount=_int_field(payload, "refund_amount", required=False, minimum=0),
            items=items,
            restock=_bool_field(payload, "restock", default=True),
        )


@dataclass(frozen=True)
class PaymentConfirmation:
    """Signal handed over by the payment gateway collaborator."""
    payment_reference: str
    succeeded: bool
    items: tuple[SaleItemInput, ...]
    customer_id: int | None = None
    amount: int | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "PaymentConfirmation":
        payload = _object(payload)
        succeeded = payload.get("succeeded")
        if not isinstance(succeeded, bool):
            raise ValidationError("succeeded must be a boolean")
        return cls(
            payment_reference=_str_field(payload, "payment_reference", required=True, max_length=128),
            succeeded=succeeded,
            items=_items(payload),
            customer_id=_int_field(payload, "customer_id", required=False, minimum=1),
            amount=_int_field(payload, "amount", required=False, minimum=0),
        )


# =============================================================================
# INVENTORY
# =============================================================================

@dataclass(frozen=True)
class StockAdjustmentInput:
    product_id: int
    new_stock: int
    reason: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "StockAdjustmentInput":
        payload = _object(payload, "adjustment")
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1),
            new_stock=_int_field(payload, "new_stock", minimum=0),
            reason=_str_field(payload, "reason"),
        )


@dataclass(frozen=True)
class AdjustStockRequest:
    adjustments: tuple[StockAdjustmentInput, ...]
    reason: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "AdjustStockRequest":
        payload = _object(payload)
        raw = _list_field(payload, "adjustments", required=True)
        adjustments = tuple(StockAdjustmentInput.from_dict(entry) for entry in raw)
        seen = set()
        for adj in adjustments:
            if adj.product_id in seen:
                raise ValidationError(f"product_id {adj.product_id} appears more than once")
            seen.add(adj.product_id)
        return cls(adjustments=adjustments, reason=_str_field(payload, "reason"))


@dataclass(frozen=True)
class ReceiveStockRequest:
    product_id: int
    quantity: int
    unit_cost: int | None = None
    document_number: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "ReceiveStockRequest":
        payload = _object(payload)
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1),
            quantity=_int_field(payload, "quantity", minimum=1),
            unit_cost=_int_field(payload, "unit_cost", required=False, minimum=0),
            document_number=_str_field(payload, "document_number", max_length=64),
            notes=_str_field(payload, "notes"),
        )


@dataclass(frozen=True)
class DamageRequest:
    product_id: int
    quantity: int
    notes: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "DamageRequest":
        payload = _object(payload)
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1),
            quantity=_int_field(payload, "quantity", minimum=1),
            notes=_str_field(payload, "notes"),
        )


def _location(raw: Any, key: str) -> dict:
    raw = _object(raw, key)
    location = {part: _str_field(raw, part, max_length=32) for part in ("aisle", "shelf", "bin")}
    if not any(location.values()):
        raise ValidationError(f"{key} needs at least one of aisle, shelf, bin")
    return location


@dataclass(frozen=True)
class TransferRequest:
    product_id: int
    to_location: dict
    quantity: int | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "TransferRequest":
        payload = _object(payload)
        if "to_location" not in payload:
            raise ValidationError("to_location is required")
        return cls(
            product_id=_int_field(payload, "product_id", minimum=1),
            to_location=_location(payload["to_location"], "to_location"),
            quantity=_int_field(payload, "quantity", required=False, minimum=1),
            notes=_str_field(payload, "notes"),
        )


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class CreateProductRequest:
    sku: str
    name: str
    cost_price: int
    selling_price: int
    initial_stock: int = 0
    min_stock: int = 5
    max_stock: int | None = None
    barcode: str | None = None
    brand: str | None = None
    description: str | None = None
    wholesale_price: int | None = None
    discount_price: int | None = None
    location: dict | None = None

    @classmethod
    def from_dict(cls, payload: Any) -> "CreateProductRequest":
        payload = _object(payload)
        location = payload.get("location")
        return cls(
            sku=_str_field(payload, "sku", required=True, max_length=64),
            name=_str_field(payload, "name", required=True),
            cost_price=_int_field(payload, "cost_price", minimum=0),
            selling_price=_int_field(payload, "selling_price", minimum=0),
            initial_stock=_int_field(payload, "initial_stock", required=False, minimum=0, default=0),
            min_stock=_int_field(payload, "min_stock", required=False, minimum=0, default=5),
            max_stock=_int_field(payload, "max_stock", required=False, minimum=0),
            barcode=_str_field(payload, "barcode", max_length=64),
            brand=_str_field(payload, "brand", max_length=120),
            description=_str_field(payload, "description", max_length=2000),
            wholesale_price=_int_field(payload, "wholesale_price", required=False, minimum=0),
            discount_price=_int_field(payload, "discount_price", required=False, minimum=0),
            location=_location(location, "location") if location else None,
        )


# =============================================================================
# QUERY STRING
# =============================================================================

def optional_int_arg(args, key: str, *, minimum: int | None = 1) -> int | None:
    raw = args.get(key)
    if raw is None or raw == "":
        return None
    return _int_field({key: raw}, key, minimum=minimum)


def parse_pagination(args, *, default_limit: int = 50, max_limit: int = 200) -> tuple[int, int]:
    """(limit, offset) from ?limit=&offset=, limit clamped to max_limit."""
    limit = optional_int_arg(args, "limit", minimum=1)
    offset = optional_int_arg(args, "offset", minimum=0)
    if limit is None:
        limit = default_limit
    return min(limit, max_limit), offset or 0
