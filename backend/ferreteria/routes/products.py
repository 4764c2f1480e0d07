# Overview: Flask API routes for product catalog operations; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..errors import CoreError
from ..models.auth import ROLE_ADMIN, STAFF_ROLES
from ..services import products_service
from ..services.concurrency import run_with_retry
from ..validation import CreateProductRequest, ValidationError, parse_pagination
from ..decorators import require_auth, require_role


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
def list_products_route():
    try:
        limit, offset = parse_pagination(request.args)
    except ValidationError as e:
        return {"error": str(e)}, 400

    products, total = products_service.list_products(
        search=request.args.get("search"),
        include_inactive=_flag("include_inactive") and g.current_user.role in STAFF_ROLES,
        low_stock=_flag("low_stock"),
        limit=limit,
        offset=offset,
    )
    return {
        "products": [p.to_dict() for p in products],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }, 200


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    """Create a product; initial_stock is booked as an adjustment movement."""
    try:
        payload = CreateProductRequest.from_dict(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    user_id = g.current_user.id
    try:
        product = run_with_retry(lambda: products_service.create_product(payload, user_id))
    except CoreError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return {"product": product.to_dict()}, 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(
            product_id, include_inactive=g.current_user.role in STAFF_ROLES
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    return {"product": product.to_dict()}, 200


@products_bp.get("/sku/<string:sku>")
@require_auth
def get_product_by_sku_route(sku: str):
    """Scanner lookup; SKU match is case-insensitive."""
    try:
        product = products_service.get_product_by_sku(
            sku, include_inactive=g.current_user.role in STAFF_ROLES
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    return {"product": product.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_product_route(product_id: int):
    """Soft delete (is_active=False). History and stock are kept."""
    try:
        product = run_with_retry(lambda: products_service.deactivate_product(product_id))
    except CoreError as e:
        return e.to_dict(), e.http_status
    return {"product": product.to_dict()}, 200
