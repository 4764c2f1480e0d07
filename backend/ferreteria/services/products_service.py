# Overview: Service-layer operations for the product catalog; creation, lookup and soft delete.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import DuplicateProduct, ProductNotFound
from ..models import Product
from .concurrency import lock_for_update, unit_of_work
from .inventory_service import record_initial_stock


def create_product(request, user_id: int) -> Product:
    """
    Create a catalog product. request is a CreateProductRequest.

    Opening stock is never written directly: it goes through the ledger
    as an adjustment movement so reconciliation starts from zero.
    """
    sku = request.sku.strip().upper()

    with unit_of_work():
        clash = Product.query.filter(Product.sku == sku).first()
        if clash is not None:
            raise DuplicateProduct(f"SKU {sku} already exists", details={"sku": sku, "product_id": clash.id})
        if request.barcode:
            clash = Product.query.filter(Product.barcode == request.barcode).first()
            if clash is not None:
                raise DuplicateProduct(
                    f"Barcode {request.barcode} already exists",
                    details={"barcode": request.barcode, "product_id": clash.id},
                )

        location = request.location or {}
        product = Product(
            sku=sku,
            barcode=request.barcode,
            name=request.name,
            description=request.description,
            brand=request.brand,
            cost_price=request.cost_price,
            selling_price=request.selling_price,
            wholesale_price=request.wholesale_price,
            discount_price=request.discount_price,
            current_stock=0,
            min_stock=request.min_stock,
            max_stock=request.max_stock,
            location_aisle=location.get("aisle"),
            location_shelf=location.get("shelf"),
            location_bin=location.get("bin"),
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()

        record_initial_stock(product, request.initial_stock, user_id=user_id)

    current_app.logger.info("Product %s created with %d unit(s)", product.sku, product.current_stock)
    return product


def get_product(product_id: int, *, include_inactive: bool = True) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None or (not include_inactive and not product.is_active):
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_product_by_sku(sku: str, *, include_inactive: bool = True) -> Product:
    normalized = (sku or "").strip().upper()
    product = Product.query.filter_by(sku=normalized).first()
    if product is None or (not include_inactive and not product.is_active):
        raise ProductNotFound(f"Product {normalized} not found", details={"sku": normalized})
    return product


def deactivate_product(product_id: int) -> Product:
    """Soft delete. Stock and history are kept; sales reject the product from now on."""
    with unit_of_work():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
        product.is_active = False

    current_app.logger.info("Product %s deactivated", product.sku)
    return product


def list_products(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    low_stock: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Product], int]:
    q = Product.query
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if low_stock:
        q = q.filter(Product.current_stock <= Product.min_stock)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))

    total = q.count()
    items = q.order_by(Product.name.asc(), Product.id.asc()).offset(offset).limit(limit).all()
    return items, total
