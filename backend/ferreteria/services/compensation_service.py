"""
Compensation Service - cancellation and refund of completed sales

WHY: A completed sale is never edited or deleted. It is compensated:
stock comes back through RETURN movements that point at the original
sale, and the customer aggregates are walked back in the same unit of
work. The original sale movements stay in the ledger untouched.

STATE MACHINE:
    completed -> cancelled   (cancel_sale)
    completed -> refunded    (refund_sale, at most once)
Nothing leaves cancelled or refunded.

COST: return movements carry the unit_cost recorded on the original sale
movement, not the product's current cost_price.
"""

from __future__ import annotations

from flask import current_app

from ..errors import AlreadyRefunded, InvalidLine, InvalidState, RefundExceedsSale
from ..extensions import db
from ..models import InventoryMovement, Product, Sale
from ..models.inventory import DOCUMENT_SALE, MOVEMENT_RETURN, MOVEMENT_SALE
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_COMPLETED, SALE_STATUS_REFUNDED
from ferreteria.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work
from .customer_service import get_customer, reverse_purchase
from .inventory_service import StockReference, reverse
from .sales_service import get_sale


def _sale_movement_costs(sale: Sale) -> dict[int, list]:
    """Unit cost of each original sale movement, per product, in write order."""
    movements = (
        InventoryMovement.query.filter_by(
            type=MOVEMENT_SALE,
            reference_document_type=DOCUMENT_SALE,
            reference_document_id=sale.id,
        )
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    costs: dict[int, list] = {}
    for m in movements:
        costs.setdefault(m.product_id, []).append(m.unit_cost)
    return costs


def _sold_quantities(sale: Sale) -> dict[int, int]:
    sold: dict[int, int] = {}
    for line in sale.lines:
        sold[line.product_id] = sold.get(line.product_id, 0) + line.quantity
    return sold


def _lock_products(product_ids) -> None:
    ids = sorted(set(product_ids))
    if ids:
        lock_for_update(
            db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
        ).all()


def _restock(sale: Sale, quantities: dict[int, int], user_id: int, notes: str) -> list:
    """
    Return movements for {product_id: quantity}.

    Lines are walked in position order and each one gives back at most its
    own quantity, so a full restock writes exactly one return per original
    sale movement, each at that movement's unit cost.
    """
    _lock_products(quantities)
    costs = _sale_movement_costs(sale)
    remaining = dict(quantities)
    reference = StockReference(DOCUMENT_SALE, document_id=sale.id, document_number=sale.sale_number)

    changes = []
    for line in sale.lines:
        line_costs = costs.get(line.product_id) or [None]
        unit_cost = line_costs.pop(0) if len(line_costs) > 1 else line_costs[0]
        qty = min(line.quantity, remaining.get(line.product_id, 0))
        if qty <= 0:
            continue
        remaining[line.product_id] -= qty
        changes.append(
            reverse(
                line.product_id,
                qty,
                MOVEMENT_RETURN,
                reference,
                user_id,
                unit_cost=unit_cost,
                notes=notes,
            )
        )
    return changes


def _require_completed(sale: Sale, action: str) -> None:
    if sale.status != SALE_STATUS_COMPLETED:
        raise InvalidState(
            f"Cannot {action} sale {sale.sale_number} with status {sale.status}",
            details={"sale_id": sale.id, "status": sale.status},
        )


def cancel_sale(sale_id: int, user_id: int, reason: str | None = None) -> Sale:
    """Fully reverse a completed sale."""
    with unit_of_work():
        sale = get_sale(sale_id, lock=True)
        _require_completed(sale, "cancel")

        _restock(sale, _sold_quantities(sale), user_id, f"Cancellation of sale {sale.sale_number}")

        if sale.customer_id is not None:
            customer = get_customer(sale.customer_id, lock=True, include_inactive=True)
            reverse_purchase(customer, sale.total, on_credit=sale.payment_method == "credit")

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_at = utcnow()
        sale.cancelled_by_user_id = user_id
        sale.cancel_reason = reason

    current_app.logger.info("Sale %s cancelled by user %s", sale.sale_number, user_id)
    return sale


def _requested_quantities(sale: Sale, items) -> dict[int, int]:
    sold = _sold_quantities(sale)
    requested: dict[int, int] = {}
    for item in items:
        if item.product_id not in sold:
            raise InvalidLine(
                f"Product {item.product_id} is not on sale {sale.sale_number}",
                details={"product_id": item.product_id, "sale_id": sale.id},
            )
        if item.quantity <= 0:
            raise InvalidLine(
                "quantity must be at least 1",
                details={"product_id": item.product_id, "quantity": item.quantity},
            )
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    for product_id, qty in requested.items():
        if qty > sold[product_id]:
            raise RefundExceedsSale(
                f"Cannot refund {qty} unit(s) of product {product_id}; only {sold[product_id]} sold",
                details={"product_id": product_id, "requested": qty, "sold": sold[product_id]},
            )
    return requested


def refund_sale(sale_id: int, request, user_id: int) -> Sale:
    """
    Refund a completed sale, fully or per item. request is a RefundSaleRequest.

    items given: only those quantities go back to stock.
    items omitted: every line goes back to stock, unless restock is False
    (money-only refund, stock untouched).
    """
    with unit_of_work():
        sale = get_sale(sale_id, lock=True)
        if sale.is_refunded:
            raise AlreadyRefunded(
                f"Sale {sale.sale_number} was already refunded",
                details={"sale_id": sale.id},
            )
        _require_completed(sale, "refund")

        amount = sale.total if request.refund_amount is None else request.refund_amount
        if amount < 0 or amount > sale.total:
            raise RefundExceedsSale(
                f"Refund amount must be between 0 and {sale.total}",
                details={"refund_amount": amount, "total": sale.total},
            )

        if request.items:
            quantities = _requested_quantities(sale, request.items)
        elif request.restock:
            quantities = _sold_quantities(sale)
        else:
            quantities = {}

        notes = f"Refund of sale {sale.sale_number}: {request.refund_reason}"[:255]
        _restock(sale, quantities, user_id, notes)

        if sale.customer_id is not None:
            customer = get_customer(sale.customer_id, lock=True, include_inactive=True)
            reverse_purchase(customer, amount, on_credit=sale.payment_method == "credit")

        sale.status = SALE_STATUS_REFUNDED
        sale.is_refunded = True
        sale.refund_date = utcnow()
        sale.refund_amount = amount
        sale.refund_reason = request.refund_reason
        sale.refund_restocked = bool(quantities)
        sale.refunded_by_user_id = user_id

    current_app.logger.info(
        "Sale %s refunded by user %s: amount %d, %d product(s) restocked",
        sale.sale_number, user_id, amount, len(quantities),
    )
    return sale
