# Overview: Service-layer operations for customers; purchase aggregates kept alongside sales.

from __future__ import annotations

from ..extensions import db
from ..errors import CustomerNotFound
from ..models import Customer
from ferreteria.time_utils import utcnow
from .concurrency import lock_for_update


def get_customer(customer_id: int, *, lock: bool = False, include_inactive: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if customer is None or (not include_inactive and not customer.is_active):
        raise CustomerNotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def record_purchase(customer: Customer, amount: int, *, on_credit: bool) -> None:
    """Runs inside the caller's unit of work."""
    customer.total_purchases += amount
    customer.last_purchase = utcnow()
    if on_credit:
        customer.current_credit += amount


def reverse_purchase(customer: Customer, amount: int, *, on_credit: bool) -> None:
    """
    Undo (part of) a recorded purchase. Runs inside the caller's unit of work.

    Both aggregates are floored at zero: manual credit payments recorded
    elsewhere may already have brought current_credit down.
    """
    customer.total_purchases = max(0, customer.total_purchases - amount)
    if on_credit:
        customer.current_credit = max(0, customer.current_credit - amount)
