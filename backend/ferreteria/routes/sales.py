# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/ferreteria/routes/sales.py
"""Sales API routes: create, query, cancel, refund"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError
from ..models.auth import STAFF_ROLES
from ..services import compensation_service, sales_service
from ..services.auth_service import can_override_price
from ..services.concurrency import run_with_retry
from ..validation import (
    CreateSaleRequest,
    RefundSaleRequest,
    ValidationError,
    optional_int_arg,
    parse_pagination,
)
from ..decorators import require_auth, require_role


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_sale_route():
    """
    Create and complete a sale: stock, ledger and customer stats in one commit.

    Available to: admin, employee
    """
    try:
        payload = CreateSaleRequest.from_dict(request.get_json(silent=True))
        user_id = g.current_user.id
        allow_override = can_override_price(g.current_user)

        sale = run_with_retry(
            lambda: sales_service.create_sale(payload, user_id, allow_price_override=allow_override)
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_sales_route():
    """Filter: start_date, end_date, customer_id, cashier_id, status, payment_method."""
    try:
        limit, offset = parse_pagination(request.args)
        sales, total = sales_service.list_sales(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            customer_id=optional_int_arg(request.args, "customer_id"),
            cashier_id=optional_int_arg(request.args, "cashier_id"),
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "sales": [s.to_dict() for s in sales],
            "pagination": {"limit": limit, "offset": offset, "total": total},
        }), 200

    except (ValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale_detail(sale_id)}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.put("/<int:sale_id>/cancel")
@require_auth
@require_role(*STAFF_ROLES)
def cancel_sale_route(sale_id: int):
    """
    Cancel a completed sale: restocks every line, reverses customer stats.

    Available to: admin, employee
    """
    try:
        data = request.get_json(silent=True) or {}
        reason = data.get("reason")
        if reason is not None and not isinstance(reason, str):
            return jsonify({"error": "reason must be a string"}), 400
        user_id = g.current_user.id

        sale = run_with_retry(lambda: compensation_service.cancel_sale(sale_id, user_id, reason))
        return jsonify({"sale": sale.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_role(*STAFF_ROLES)
def refund_sale_route(sale_id: int):
    """
    Refund a completed sale, whole or per item.

    Available to: admin, employee
    """
    try:
        payload = RefundSaleRequest.from_dict(request.get_json(silent=True))
        user_id = g.current_user.id

        sale = run_with_retry(lambda: compensation_service.refund_sale(sale_id, payload, user_id))
        return jsonify({"sale": sale.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to refund sale")
        return jsonify({"error": "Internal server error"}), 500
