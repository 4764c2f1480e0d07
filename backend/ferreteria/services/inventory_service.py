# Overview: Service-layer operations for inventory; the stock ledger that owns current_stock.

# backend/ferreteria/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, InvalidLine, ProductInactive, ProductNotFound
from ..models import InventoryMovement, Product
from ..models.inventory import (
    DOCUMENT_ADJUSTMENT,
    DOCUMENT_PURCHASE_ORDER,
    DOCUMENT_TRANSFER,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_DAMAGE,
    MOVEMENT_PURCHASE,
    MOVEMENT_RETURN,
    MOVEMENT_SALE,
    MOVEMENT_TRANSFER,
    MOVEMENT_TYPES,
)
from ferreteria.time_utils import utcnow, parse_iso_datetime
from .concurrency import lock_for_update, unit_of_work
"""
Stock ledger invariants (authoritative)

- Product.current_stock is the authoritative on-hand counter and is written
  ONLY from this module.
- Every write appends exactly one InventoryMovement with
  new_stock = previous_stock + quantity_delta, and new_stock equals
  current_stock right after the write.
- sale / damage decrement and may never take current_stock below zero.
- return / purchase increment; there is no max_stock cap, the caller only
  gets an exceeds_max_stock flag.
- adjustment sets stock to a counted value (signed delta).
- transfer moves the bin location and carries quantity_delta = 0.
- Movements are append-only (ORM guards in models/inventory.py).

reserve_and_apply() and reverse() run inside the caller's unit of work and
only flush. The public operations further down open their own unit of work.
"""

DECREMENTING_TYPES = frozenset({MOVEMENT_SALE, MOVEMENT_DAMAGE})
INCREMENTING_TYPES = frozenset({MOVEMENT_RETURN, MOVEMENT_PURCHASE})


@dataclass(frozen=True)
class StockReference:
    """Source document a movement points back to."""
    document_type: str
    document_id: int | None = None
    document_number: str | None = None


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous_stock: int
    new_stock: int
    movement: InventoryMovement
    exceeds_max_stock: bool = False

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "difference": self.new_stock - self.previous_stock,
            "exceeds_max_stock": self.exceeds_max_stock,
            "movement": self.movement.to_dict(),
        }


def _load_product(product_id: int, *, require_active: bool = True, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductInactive(
            f"Product {product.name} is inactive",
            details={"product_id": product_id, "sku": product.sku},
        )
    return product


def _append_movement(
    product: Product,
    *,
    movement_type: str,
    quantity: int,
    quantity_delta: int,
    user_id: int,
    reference: StockReference | None = None,
    unit_cost: int | None = None,
    notes: str | None = None,
    location_from: dict | None = None,
    location_to: dict | None = None,
) -> StockChange:
    """Write the new counter and its ledger row together. Caller holds the lock."""
    previous = product.current_stock
    new = previous + quantity_delta
    if new < 0:
        raise InsufficientStock(
            product_id=product.id,
            product_name=product.name,
            available=previous,
            requested=quantity,
        )

    if unit_cost is None:
        unit_cost = product.cost_price

    product.current_stock = new
    product.last_stock_update = utcnow()

    movement = InventoryMovement(
        product_id=product.id,
        type=movement_type,
        quantity=quantity,
        quantity_delta=quantity_delta,
        previous_stock=previous,
        new_stock=new,
        unit_cost=unit_cost,
        total_cost=unit_cost * quantity,
        reference_document_type=reference.document_type if reference else None,
        reference_document_id=reference.document_id if reference else None,
        reference_document_number=reference.document_number if reference else None,
        user_id=user_id,
        notes=notes,
        location_from=location_from,
        location_to=location_to,
    )
    db.session.add(movement)
    db.session.flush()

    exceeds = product.max_stock is not None and new > product.max_stock
    return StockChange(
        product_id=product.id,
        previous_stock=previous,
        new_stock=new,
        movement=movement,
        exceeds_max_stock=exceeds,
    )


def reserve_and_apply(
    product_id: int,
    quantity: int,
    movement_type: str,
    reference: StockReference | None,
    user_id: int,
    *,
    unit_cost: int | None = None,
    notes: str | None = None,
) -> StockChange:
    """
    Lock the product, check availability and decrement stock by `quantity`.

    Runs inside the caller's unit of work. Raises InsufficientStock when
    current_stock < quantity; nothing is written in that case.
    """
    if movement_type not in DECREMENTING_TYPES:
        raise ValueError(f"{movement_type!r} is not a decrementing movement type")
    if quantity <= 0:
        raise InvalidLine("quantity must be positive", details={"product_id": product_id, "quantity": quantity})

    product = _load_product(product_id, require_active=True, lock=True)
    return _append_movement(
        product,
        movement_type=movement_type,
        quantity=quantity,
        quantity_delta=-quantity,
        user_id=user_id,
        reference=reference,
        unit_cost=unit_cost,
        notes=notes,
    )


def reverse(
    product_id: int,
    quantity: int,
    movement_type: str,
    reference: StockReference | None,
    user_id: int,
    *,
    unit_cost: int | None = None,
    notes: str | None = None,
) -> StockChange:
    """
    Symmetric increase (return / purchase). Runs inside the caller's unit of work.

    Inactive products are accepted so historical sales stay compensable.
    """
    if movement_type not in INCREMENTING_TYPES:
        raise ValueError(f"{movement_type!r} is not an incrementing movement type")
    if quantity <= 0:
        raise InvalidLine("quantity must be positive", details={"product_id": product_id, "quantity": quantity})

    product = _load_product(product_id, require_active=False, lock=True)
    return _append_movement(
        product,
        movement_type=movement_type,
        quantity=quantity,
        quantity_delta=quantity,
        user_id=user_id,
        reference=reference,
        unit_cost=unit_cost,
        notes=notes,
    )


def _set_stock_inner(product: Product, new_stock: int, *, user_id: int, notes: str | None) -> StockChange:
    if new_stock < 0:
        raise InvalidLine("new_stock cannot be negative", details={"product_id": product.id})
    delta = new_stock - product.current_stock
    return _append_movement(
        product,
        movement_type=MOVEMENT_ADJUSTMENT,
        quantity=abs(delta),
        quantity_delta=delta,
        user_id=user_id,
        reference=StockReference(DOCUMENT_ADJUSTMENT),
        notes=notes,
    )


def record_initial_stock(product: Product, quantity: int, *, user_id: int) -> StockChange | None:
    """Opening balance for a freshly created product. Runs inside the caller's unit of work."""
    if quantity <= 0:
        return None
    return _set_stock_inner(product, quantity, user_id=user_id, notes="Initial stock")


def adjust_stock(adjustments, reason: str | None, user_id: int) -> list[StockChange]:
    """
    Batch physical-count adjustment: every product is set to its counted
    value. All-or-nothing; products are locked in ascending id order.
    """
    by_product = {adj.product_id: adj for adj in adjustments}
    if len(by_product) != len(adjustments):
        raise InvalidLine("Each product may be adjusted only once per batch")

    changes = []
    with unit_of_work():
        for product_id in sorted(by_product):
            adj = by_product[product_id]
            product = _load_product(product_id, require_active=True, lock=True)
            changes.append(
                _set_stock_inner(
                    product,
                    adj.new_stock,
                    user_id=user_id,
                    notes=adj.reason or reason or "Inventory adjustment",
                )
            )

    current_app.logger.info(
        "Stock adjusted for %d product(s) by user %s: %s",
        len(changes),
        user_id,
        ", ".join(f"{c.product_id}:{c.previous_stock}->{c.new_stock}" for c in changes),
    )
    return changes


def receive_stock(
    product_id: int,
    quantity: int,
    user_id: int,
    *,
    unit_cost: int | None = None,
    document_number: str | None = None,
    notes: str | None = None,
) -> StockChange:
    """Purchase receipt: increments stock and records the purchase cost."""
    with unit_of_work():
        # Receiving into a discontinued product is almost always a mistake
        _load_product(product_id, require_active=True)
        change = reverse(
            product_id,
            quantity,
            MOVEMENT_PURCHASE,
            StockReference(DOCUMENT_PURCHASE_ORDER, document_number=document_number),
            user_id,
            unit_cost=unit_cost,
            notes=notes or "Stock received",
        )

    current_app.logger.info(
        "Received %d unit(s) of product %s (%d -> %d)",
        quantity, product_id, change.previous_stock, change.new_stock,
    )
    return change


def record_damage(product_id: int, quantity: int, user_id: int, *, notes: str | None = None) -> StockChange:
    """Write off damaged units."""
    with unit_of_work():
        change = reserve_and_apply(
            product_id,
            quantity,
            MOVEMENT_DAMAGE,
            StockReference(DOCUMENT_ADJUSTMENT),
            user_id,
            notes=notes or "Damaged goods",
        )

    current_app.logger.info(
        "Wrote off %d damaged unit(s) of product %s (%d -> %d)",
        quantity, product_id, change.previous_stock, change.new_stock,
    )
    return change


def transfer_location(
    product_id: int,
    to_location: dict,
    user_id: int,
    *,
    quantity: int | None = None,
    notes: str | None = None,
) -> StockChange:
    """Move the product to another bin. Stock is unchanged (quantity_delta = 0)."""
    with unit_of_work():
        product = _load_product(product_id, require_active=True, lock=True)
        from_location = product.location

        product.location_aisle = to_location.get("aisle")
        product.location_shelf = to_location.get("shelf")
        product.location_bin = to_location.get("bin")

        change = _append_movement(
            product,
            movement_type=MOVEMENT_TRANSFER,
            quantity=quantity if quantity is not None else product.current_stock,
            quantity_delta=0,
            user_id=user_id,
            reference=StockReference(DOCUMENT_TRANSFER),
            notes=notes or "Location transfer",
            location_from=from_location,
            location_to=dict(to_location),
        )

    current_app.logger.info("Product %s moved from %s to %s", product_id, from_location, to_location)
    return change


# =============================================================================
# QUERIES
# =============================================================================

def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    user_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[InventoryMovement], int]:
    """Newest first. Returns (page, total matching)."""
    q = InventoryMovement.query
    if product_id is not None:
        q = q.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        if movement_type not in MOVEMENT_TYPES:
            raise InvalidLine(f"Unknown movement type: {movement_type}")
        q = q.filter(InventoryMovement.type == movement_type)
    if user_id is not None:
        q = q.filter(InventoryMovement.user_id == user_id)

    start_dt = parse_iso_datetime(start_date)
    end_dt = parse_iso_datetime(end_date, end_of_day=True)
    if start_dt is not None:
        q = q.filter(InventoryMovement.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(InventoryMovement.created_at <= end_dt)

    total = q.count()
    items = (
        q.order_by(InventoryMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def get_product_history(product_id: int, *, limit: int = 200) -> list[InventoryMovement]:
    _load_product(product_id, require_active=False)
    return (
        InventoryMovement.query.filter_by(product_id=product_id)
        .order_by(InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )


def list_low_stock() -> list[Product]:
    return (
        Product.query.filter(
            Product.is_active.is_(True),
            Product.current_stock <= Product.min_stock,
        )
        .order_by(Product.current_stock.asc(), Product.id.asc())
        .all()
    )


def list_out_of_stock() -> list[Product]:
    return (
        Product.query.filter(Product.is_active.is_(True), Product.current_stock == 0)
        .order_by(Product.updated_at.desc(), Product.id.asc())
        .all()
    )


def reconcile_product(product_id: int) -> dict:
    """
    Replay the ledger for one product.

    opening stock (first movement's previous_stock) + sum of deltas must
    equal current_stock, and each movement must start where the previous
    one ended.
    """
    product = _load_product(product_id, require_active=False)
    movements = (
        InventoryMovement.query.filter_by(product_id=product_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )

    if not movements:
        return {
            "product_id": product.id,
            "sku": product.sku,
            "current_stock": product.current_stock,
            "expected_stock": 0,
            "movement_count": 0,
            "chain_breaks": [],
            "consistent": product.current_stock == 0,
        }

    opening = movements[0].previous_stock
    total_delta = sum(m.quantity_delta for m in movements)
    expected = opening + total_delta

    breaks = []
    for prev, curr in zip(movements, movements[1:]):
        if curr.previous_stock != prev.new_stock:
            breaks.append({
                "movement_id": curr.id,
                "expected_previous_stock": prev.new_stock,
                "previous_stock": curr.previous_stock,
            })

    consistent = (
        not breaks
        and expected == product.current_stock
        and movements[-1].new_stock == product.current_stock
    )
    return {
        "product_id": product.id,
        "sku": product.sku,
        "current_stock": product.current_stock,
        "expected_stock": expected,
        "movement_count": len(movements),
        "chain_breaks": breaks,
        "consistent": consistent,
    }


def reconcile_all() -> list[dict]:
    """Reconcile every product, active or not."""
    product_ids = [row[0] for row in db.session.query(Product.id).order_by(Product.id).all()]
    return [reconcile_product(pid) for pid in product_ids]


def stock_summary() -> dict:
    row = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.current_stock * Product.cost_price), 0),
    ).filter(Product.is_active.is_(True)).one()
    return {
        "total_products": int(row[0] or 0),
        "total_stock_value": int(row[1] or 0),
        "low_stock_products": len(list_low_stock()),
        "out_of_stock_products": len(list_out_of_stock()),
    }
