# Overview: Service-layer operations for storefront checkout; turns a confirmed payment into a sale.

from __future__ import annotations

from flask import current_app

from ..errors import PaymentNotConfirmed
from ..models import Sale
from ..validation import CreateSaleRequest
from .sales_service import create_sale, get_sale_by_payment_reference


def confirm_checkout(confirmation, user_id: int) -> tuple[Sale, bool]:
    """
    Materialize a card sale once the gateway reports the payment succeeded.

    Returns (sale, created). A confirmation replayed with the same
    payment_reference returns the sale written the first time with
    created=False. Two concurrent first confirmations race on the unique
    payment_reference; the loser gets PersistenceConflict and finds the
    existing sale when retried.
    """
    if not confirmation.succeeded:
        raise PaymentNotConfirmed(
            "Payment was not confirmed by the gateway",
            details={"payment_reference": confirmation.payment_reference},
        )

    existing = get_sale_by_payment_reference(confirmation.payment_reference)
    if existing is not None:
        current_app.logger.info(
            "Payment %s already recorded as sale %s",
            confirmation.payment_reference, existing.sale_number,
        )
        return existing, False

    request = CreateSaleRequest(
        items=confirmation.items,
        payment_method="card",
        customer_id=confirmation.customer_id,
        payment_details={"gateway_reference": confirmation.payment_reference},
    )
    sale = create_sale(
        request,
        user_id,
        payment_reference=confirmation.payment_reference,
        expected_total=confirmation.amount,
    )
    return sale, True
