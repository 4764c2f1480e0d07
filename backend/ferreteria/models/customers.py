from __future__ import annotations

from ..extensions import db
from ferreteria.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    Owned by customer management; the sale core only touches the
    denormalized aggregates (total_purchases, last_purchase, current_credit)
    inside the same unit of work as the sale it records.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("current_credit >= 0", name="ck_customers_credit_non_negative"),
        db.Index("ix_customers_active_last_name", "is_active", "last_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    rut = db.Column(db.String(16), nullable=True, unique=True)
    customer_type = db.Column(db.String(16), nullable=False, default="individual")
    business_name = db.Column(db.String(255), nullable=True)

    credit_limit = db.Column(db.Integer, nullable=False, default=0)

    # Denormalized aggregates (maintained by the sale core)
    current_credit = db.Column(db.Integer, nullable=False, default=0)
    total_purchases = db.Column(db.Integer, nullable=False, default=0)
    last_purchase = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "rut": self.rut,
            "customer_type": self.customer_type,
            "business_name": self.business_name,
            "credit_limit": self.credit_limit,
            "current_credit": self.current_credit,
            "total_purchases": self.total_purchases,
            "last_purchase": to_utc_z(self.last_purchase),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
