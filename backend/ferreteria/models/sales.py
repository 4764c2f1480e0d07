from __future__ import annotations

from ..extensions import db
from ferreteria.time_utils import to_utc_z


SALE_STATUS_PENDING = "pending"
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"
SALE_STATUS_REFUNDED = "refunded"

SALE_STATUSES = (
    SALE_STATUS_PENDING,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_REFUNDED,
)

PAYMENT_METHODS = ("cash", "card", "transfer", "credit", "mixed")


class Sale(db.Model):
    """
    Sale document.

    Line items and totals are written once, at creation, from the pricing
    calculator's output. Afterwards only status and the refund /
    cancellation audit fields change.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g. "V-000123"), allocated from document_sequences
    sale_number = db.Column(db.String(32), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    payment_details = db.Column(db.JSON, nullable=True)
    # Gateway reference for storefront checkouts (idempotency key)
    payment_reference = db.Column(db.String(128), nullable=True, unique=True)
    notes = db.Column(db.String(500), nullable=True)

    # Totals (integer amounts)
    subtotal = db.Column(db.Integer, nullable=False)
    discount_total = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)

    # Refund sub-record (set at most once)
    is_refunded = db.Column(db.Boolean, nullable=False, default=False)
    refund_date = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_amount = db.Column(db.Integer, nullable=True)
    refund_reason = db.Column(db.String(255), nullable=True)
    refund_restocked = db.Column(db.Boolean, nullable=True)
    refunded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Cancellation audit trail
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    cashier = db.relationship("User", foreign_keys=[cashier_id])
    refunded_by = db.relationship("User", foreign_keys=[refunded_by_user_id])
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def totals(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount_total,
            "tax": self.tax,
            "total": self.total,
        }

    @property
    def refund(self) -> dict:
        return {
            "is_refunded": self.is_refunded,
            "refund_date": to_utc_z(self.refund_date),
            "refund_amount": self.refund_amount,
            "refund_reason": self.refund_reason,
            "restocked": self.refund_restocked,
            "refunded_by": self.refunded_by_user_id,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "cashier_id": self.cashier_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_details": self.payment_details or {},
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "items": [line.to_dict() for line in self.lines],
            "totals": self.totals,
            "refund": self.refund,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancelled_by": self.cancelled_by_user_id,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class SaleLine(db.Model):
    """Individual line items on a sale document."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        db.CheckConstraint("quantity >= 1", name="ck_sale_lines_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_sale_lines_price_non_negative"),
        db.CheckConstraint("discount >= 0", name="ck_sale_lines_discount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Integer, nullable=False, default=0)
    # unit_price * quantity - discount
    subtotal = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": self.discount,
            "subtotal": self.subtotal,
        }
