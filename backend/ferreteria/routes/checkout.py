# Overview: Flask API routes for storefront checkout; turns gateway confirmations into sales.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError
from ..services import checkout_service
from ..services.concurrency import run_with_retry
from ..validation import PaymentConfirmation, ValidationError
from ..decorators import require_auth


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/payments")


@checkout_bp.post("/confirm")
@require_auth
def confirm_payment_route():
    """
    Record the sale for a payment the gateway reports as succeeded.

    201 on first confirmation, 200 when the payment_reference was already
    recorded, 402 when the gateway did not confirm the payment.
    """
    try:
        payload = PaymentConfirmation.from_dict(request.get_json(silent=True))
        user_id = g.current_user.id

        sale, created = run_with_retry(lambda: checkout_service.confirm_checkout(payload, user_id))
        return jsonify({"sale": sale.to_dict(), "created": created}), 201 if created else 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to confirm payment")
        return jsonify({"error": "Internal server error"}), 500
