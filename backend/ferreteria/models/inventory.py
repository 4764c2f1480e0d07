from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import validates

from ..extensions import db
from ferreteria.time_utils import to_utc_z


# Movement types
MOVEMENT_SALE = "sale"
MOVEMENT_RETURN = "return"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TRANSFER = "transfer"
MOVEMENT_PURCHASE = "purchase"
MOVEMENT_DAMAGE = "damage"

MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_TRANSFER,
    MOVEMENT_RETURN,
    MOVEMENT_DAMAGE,
)

# Reference document types
DOCUMENT_SALE = "sale"
DOCUMENT_PURCHASE_ORDER = "purchase_order"
DOCUMENT_ADJUSTMENT = "adjustment"
DOCUMENT_TRANSFER = "transfer"


class Product(db.Model):
    """
    Product master data with the authoritative stock counter.

    STOCK DESIGN DECISION:
    current_stock is a mutable column, written ONLY by inventory_service.
    Every write is paired with an InventoryMovement row carrying the
    before/after values, so the counter can always be reconciled against
    the ledger.

    Products are never hard-deleted: is_active=False keeps historical
    sales resolvable.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("cost_price >= 0", name="ck_products_cost_non_negative"),
        db.CheckConstraint("selling_price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Uppercased on assignment, unique across the catalog
    sku = db.Column(db.String(64), nullable=False, unique=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    brand = db.Column(db.String(120), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="piece")

    # Pricing (integer amounts, see Config.CURRENCY)
    cost_price = db.Column(db.Integer, nullable=False, default=0)
    selling_price = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price = db.Column(db.Integer, nullable=True)
    discount_price = db.Column(db.Integer, nullable=True)

    # Inventory
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)
    max_stock = db.Column(db.Integer, nullable=True)
    location_aisle = db.Column(db.String(32), nullable=True)
    location_shelf = db.Column(db.String(32), nullable=True)
    location_bin = db.Column(db.String(32), nullable=True)
    last_stock_update = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @validates("sku")
    def _normalize_sku(self, key, value):
        return value.strip().upper() if value is not None else value

    @validates("barcode")
    def _normalize_barcode(self, key, value):
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock

    @property
    def location(self) -> dict:
        return {
            "aisle": self.location_aisle,
            "shelf": self.location_shelf,
            "bin": self.location_bin,
        }

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "unit": self.unit,
            "pricing": {
                "cost_price": self.cost_price,
                "selling_price": self.selling_price,
                "wholesale_price": self.wholesale_price,
                "discount_price": self.discount_price,
            },
            "inventory": {
                "current_stock": self.current_stock,
                "min_stock": self.min_stock,
                "max_stock": self.max_stock,
                "location": self.location,
                "last_stock_update": to_utc_z(self.last_stock_update),
                "is_low_stock": self.is_low_stock,
            },
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger.

    quantity is the magnitude moved; quantity_delta is the signed change
    applied to current_stock (new_stock = previous_stock + quantity_delta).
    Transfers move units between bins and carry quantity_delta = 0.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("new_stock >= 0", name="ck_movements_new_stock_non_negative"),
        db.CheckConstraint("new_stock = previous_stock + quantity_delta", name="ck_movements_delta_consistent"),
        db.Index("ix_movements_product_id_id", "product_id", "id"),
        db.Index("ix_movements_type_created", "type", "created_at"),
        db.Index("ix_movements_reference", "reference_document_type", "reference_document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    unit_cost = db.Column(db.Integer, nullable=True)
    total_cost = db.Column(db.Integer, nullable=True)

    # Source document (sale, purchase order, adjustment, transfer)
    reference_document_type = db.Column(db.String(32), nullable=True)
    reference_document_id = db.Column(db.Integer, nullable=True)
    reference_document_number = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notes = db.Column(db.String(255), nullable=True)

    # Bin moves only
    location_from = db.Column(db.JSON, nullable=True)
    location_to = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")
    user = db.relationship("User")

    @property
    def reference(self) -> dict | None:
        if self.reference_document_type is None:
            return None
        return {
            "document_type": self.reference_document_type,
            "document_id": self.reference_document_id,
            "document_number": self.reference_document_number,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "unit_cost": self.unit_cost,
            "total_cost": self.total_cost,
            "reference": self.reference,
            "user_id": self.user_id,
            "notes": self.notes,
            "location_from": self.location_from,
            "location_to": self.location_to,
            "created_at": to_utc_z(self.created_at),
        }


class ImmutableMovementError(RuntimeError):
    """Raised when code tries to rewrite or delete ledger history."""


@event.listens_for(InventoryMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise ImmutableMovementError(f"InventoryMovement {target.id} is append-only")


@event.listens_for(InventoryMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise ImmutableMovementError(f"InventoryMovement {target.id} is append-only")
