# backend/ferreteria/routes/inventory.py
"""
Inventory management routes.

SECURITY: All routes require authentication.
- Read operations are open to staff (admin, employee)
- Adjust / receive / damage / transfer require staff as well; every
  movement records the acting user

Time semantics:
- start_date / end_date accept ISO-8601 with Z/offsets; normalized to UTC-naive.
"""
from flask import Blueprint, request, g, current_app

from ..errors import CoreError
from ..models.auth import STAFF_ROLES
from ..services import inventory_service
from ..services.concurrency import run_with_retry
from ..validation import (
    AdjustStockRequest,
    DamageRequest,
    ReceiveStockRequest,
    TransferRequest,
    ValidationError,
    optional_int_arg,
    parse_pagination,
)
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/summary")
@require_auth
@require_role(*STAFF_ROLES)
def inventory_summary_route():
    return {"summary": inventory_service.stock_summary()}, 200


@inventory_bp.get("/movements")
@require_auth
@require_role(*STAFF_ROLES)
def list_movements_route():
    """Filter: product_id, type, user_id, start_date, end_date. Newest first."""
    try:
        limit, offset = parse_pagination(request.args)
        movements, total = inventory_service.list_movements(
            product_id=optional_int_arg(request.args, "product_id"),
            movement_type=request.args.get("type"),
            user_id=optional_int_arg(request.args, "user_id"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
    except (ValidationError, ValueError) as e:
        return {"error": str(e)}, 400
    except CoreError as e:
        return e.to_dict(), e.http_status

    return {
        "movements": [m.to_dict() for m in movements],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }, 200


@inventory_bp.get("/<int:product_id>/history")
@require_auth
@require_role(*STAFF_ROLES)
def product_history_route(product_id: int):
    try:
        movements = inventory_service.get_product_history(product_id)
    except CoreError as e:
        return e.to_dict(), e.http_status
    return {"product_id": product_id, "movements": [m.to_dict() for m in movements]}, 200


@inventory_bp.get("/<int:product_id>/reconcile")
@require_auth
@require_role(*STAFF_ROLES)
def reconcile_product_route(product_id: int):
    try:
        return {"reconciliation": inventory_service.reconcile_product(product_id)}, 200
    except CoreError as e:
        return e.to_dict(), e.http_status


@inventory_bp.get("/low-stock")
@require_auth
@require_role(*STAFF_ROLES)
def low_stock_route():
    products = inventory_service.list_low_stock()
    return {"products": [p.to_dict() for p in products], "total_low_stock": len(products)}, 200


@inventory_bp.get("/out-of-stock")
@require_auth
@require_role(*STAFF_ROLES)
def out_of_stock_route():
    products = inventory_service.list_out_of_stock()
    return {"products": [p.to_dict() for p in products], "total_out_of_stock": len(products)}, 200


@inventory_bp.post("/adjust")
@require_auth
@require_role(*STAFF_ROLES)
def adjust_stock_route():
    """
    Physical-count adjustment: sets each listed product to its counted stock.

    Body: {"adjustments": [{"product_id", "new_stock", "reason"?}], "reason"?}
    All-or-nothing.
    """
    try:
        payload = AdjustStockRequest.from_dict(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    user_id = g.current_user.id
    try:
        changes = run_with_retry(
            lambda: inventory_service.adjust_stock(payload.adjustments, payload.reason, user_id)
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return {"results": [c.to_dict() for c in changes]}, 200


@inventory_bp.post("/receive")
@require_auth
@require_role(*STAFF_ROLES)
def receive_stock_route():
    """Purchase receipt. Increments stock; no max_stock cap."""
    try:
        payload = ReceiveStockRequest.from_dict(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    user_id = g.current_user.id
    try:
        change = run_with_retry(
            lambda: inventory_service.receive_stock(
                payload.product_id,
                payload.quantity,
                user_id,
                unit_cost=payload.unit_cost,
                document_number=payload.document_number,
                notes=payload.notes,
            )
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return {"error": "Internal server error"}, 500

    return {"result": change.to_dict()}, 201


@inventory_bp.post("/damage")
@require_auth
@require_role(*STAFF_ROLES)
def record_damage_route():
    try:
        payload = DamageRequest.from_dict(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    user_id = g.current_user.id
    try:
        change = run_with_retry(
            lambda: inventory_service.record_damage(
                payload.product_id, payload.quantity, user_id, notes=payload.notes
            )
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record damage")
        return {"error": "Internal server error"}, 500

    return {"result": change.to_dict()}, 201


@inventory_bp.post("/transfer")
@require_auth
@require_role(*STAFF_ROLES)
def transfer_location_route():
    """Move a product to another aisle / shelf / bin. Stock is unchanged."""
    try:
        payload = TransferRequest.from_dict(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    user_id = g.current_user.id
    try:
        change = run_with_retry(
            lambda: inventory_service.transfer_location(
                payload.product_id,
                payload.to_location,
                user_id,
                quantity=payload.quantity,
                notes=payload.notes,
            )
        )
    except CoreError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to transfer product location")
        return {"error": "Internal server error"}, 500

    return {"result": change.to_dict()}, 200
