"""
Sales Service - atomic sale creation

WHY: A sale touches four things at once: the sale document, the stock
counters, the movement ledger and the customer aggregates. They commit
together or not at all, so a failed line never leaves a half-written
sale, a phantom decrement or an inflated customer total behind.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import CustomerNotFound, InsufficientStock, InvalidLine, ProductInactive, ProductNotFound, SaleNotFound
from ..models import InventoryMovement, Product, Sale, SaleLine
from ..models.inventory import DOCUMENT_SALE, MOVEMENT_SALE
from ..models.sales import SALE_STATUS_COMPLETED, SALE_STATUSES, PAYMENT_METHODS
from ferreteria.time_utils import parse_iso_datetime
from .concurrency import lock_for_update, unit_of_work
from .customer_service import get_customer, record_purchase
from .document_service import next_document_number
from .inventory_service import StockReference, reserve_and_apply
from .pricing_service import calculate_totals


def _lock_catalog(product_ids) -> dict[int, Product]:
    """Lock every referenced product in ascending id order (deadlock-free)."""
    ids = sorted(set(product_ids))
    query = db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
    return {p.id: p for p in lock_for_update(query).all()}


def _validate_products(items, catalog: dict[int, Product]) -> None:
    for item in items:
        product = catalog.get(item.product_id)
        if product is None:
            raise ProductNotFound(
                f"Product {item.product_id} not found",
                details={"product_id": item.product_id},
            )
        if not product.is_active:
            raise ProductInactive(
                f"Product {product.name} is inactive",
                details={"product_id": product.id, "sku": product.sku},
            )


def _validate_stock(items, catalog: dict[int, Product]) -> None:
    # Duplicate lines for one product are checked against their combined quantity
    requested: dict[int, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    for product_id, qty in requested.items():
        product = catalog[product_id]
        if product.current_stock < qty:
            raise InsufficientStock(
                product_id=product.id,
                product_name=product.name,
                available=product.current_stock,
                requested=qty,
            )


def create_sale(
    request,
    user_id: int,
    *,
    allow_price_override: bool = False,
    payment_reference: str | None = None,
    expected_total: int | None = None,
) -> Sale:
    """
    Create and complete a sale in one unit of work.

    request is a CreateSaleRequest. expected_total, when given, must match
    the recomputed total exactly (gateway-charged amount).
    """
    if not request.items:
        raise InvalidLine("A sale needs at least one line")
    if request.payment_method not in PAYMENT_METHODS:
        raise InvalidLine(f"Unknown payment method: {request.payment_method}")
    on_credit = request.payment_method == "credit"
    if on_credit and request.customer_id is None:
        raise CustomerNotFound("Credit sales require a customer")

    with unit_of_work():
        catalog = _lock_catalog(item.product_id for item in request.items)
        _validate_products(request.items, catalog)
        _validate_stock(request.items, catalog)

        pricing = calculate_totals(
            request.items,
            catalog,
            tax_rate_bps=current_app.config.get("TAX_RATE_BPS", 0),
            allow_price_override=allow_price_override,
        )
        totals = pricing.totals

        if expected_total is not None and expected_total != totals.total:
            raise InvalidLine(
                "Charged amount does not match the sale total",
                details={"expected_total": expected_total, "total": totals.total},
            )

        customer = None
        if request.customer_id is not None:
            customer = get_customer(request.customer_id, lock=True)

        sale_number = next_document_number(
            document_type=DOCUMENT_SALE,
            prefix=current_app.config.get("SALE_NUMBER_PREFIX", "V"),
            pad=current_app.config.get("SALE_NUMBER_PAD", 6),
        )

        sale = Sale(
            sale_number=sale_number,
            customer_id=customer.id if customer else None,
            cashier_id=user_id,
            status=SALE_STATUS_COMPLETED,
            payment_method=request.payment_method,
            payment_details=dict(request.payment_details or {}),
            payment_reference=payment_reference,
            notes=request.notes,
            subtotal=totals.subtotal,
            discount_total=totals.discount,
            tax=totals.tax,
            total=totals.total,
        )
        db.session.add(sale)
        db.session.flush()

        reference = StockReference(DOCUMENT_SALE, document_id=sale.id, document_number=sale_number)
        for priced in pricing.lines:
            db.session.add(
                SaleLine(
                    sale_id=sale.id,
                    position=priced.position,
                    product_id=priced.product_id,
                    quantity=priced.quantity,
                    unit_price=priced.unit_price,
                    discount=priced.discount,
                    subtotal=priced.line_total,
                )
            )
            reserve_and_apply(
                priced.product_id,
                priced.quantity,
                MOVEMENT_SALE,
                reference,
                user_id,
                notes=f"Sale {sale_number} - {catalog[priced.product_id].name}",
            )

        if customer is not None:
            record_purchase(customer, totals.total, on_credit=on_credit)

    current_app.logger.info(
        "Sale %s created by user %s: %d line(s), total %d %s",
        sale.sale_number,
        user_id,
        len(pricing.lines),
        sale.total,
        current_app.config.get("CURRENCY", "CLP"),
    )
    return sale


def get_sale(sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_payment_reference(payment_reference: str) -> Sale | None:
    return Sale.query.filter_by(payment_reference=payment_reference).first()


def get_sale_detail(sale_id: int) -> dict:
    """Sale plus resolved customer, cashier, product names and its movements."""
    sale = get_sale(sale_id)
    data = sale.to_dict()

    data["customer"] = (
        {"id": sale.customer.id, "name": sale.customer.full_name, "email": sale.customer.email}
        if sale.customer else None
    )
    data["cashier"] = (
        {"id": sale.cashier.id, "username": sale.cashier.username, "name": sale.cashier.display_name}
        if sale.cashier else None
    )

    for item, line in zip(data["items"], sale.lines):
        item["product_name"] = line.product.name if line.product else None
        item["product_sku"] = line.product.sku if line.product else None

    movements = (
        InventoryMovement.query.filter_by(
            reference_document_type=DOCUMENT_SALE,
            reference_document_id=sale.id,
        )
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    data["movements"] = [m.to_dict() for m in movements]
    return data


def list_sales(
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    customer_id: int | None = None,
    cashier_id: int | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    """Newest first. Returns (page, total matching)."""
    q = Sale.query
    if status:
        if status not in SALE_STATUSES:
            raise InvalidLine(f"Unknown sale status: {status}")
        q = q.filter(Sale.status == status)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    if cashier_id is not None:
        q = q.filter(Sale.cashier_id == cashier_id)

    start_dt = parse_iso_datetime(start_date)
    end_dt = parse_iso_datetime(end_date, end_of_day=True)
    if start_dt is not None:
        q = q.filter(Sale.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(Sale.created_at <= end_dt)

    total = q.count()
    items = q.order_by(Sale.id.desc()).offset(offset).limit(limit).all()
    return items, total
