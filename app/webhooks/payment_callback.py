import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.config import settings
from app.dependencies import get_order_service
from app.models import PaymentStatus
from app.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


def _verify_payment_signature(raw_body: bytes, signature: str | None) -> None:
    """Validate HMAC SHA-256 signature when PAYMENT_WEBHOOK_SECRET is configured."""
    if not settings.PAYMENT_WEBHOOK_SECRET:
        logger.warning("PAYMENT_WEBHOOK_SECRET is not set, skipping webhook verification")
        return

    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    expected = hmac.new(
        settings.PAYMENT_WEBHOOK_SECRET.encode("utf-8"),
        raw_body,
        hashlib.sha256,
    ).hexdigest()

    if not hmac.compare_digest(signature, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")


def _parse_order_id(value) -> int:
    if value is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="order_id required")
    try:
        order_id = int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="order_id must be integer")
    if order_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="order_id must be positive")
    return order_id


@router.post(
    "/payment",
    summary="Payment gateway callback",
)
async def payment_webhook(
    request: Request,
    service: OrderService = Depends(get_order_service),
):
    """
    Payment gateway reports a payment status change for an order.
    Expects JSON body with order_id and status (PENDING, PAID, FAILED, REFUNDED),
    optionally reference (gateway order id); gateways that send transaction_id
    instead are accepted, reference wins when both are present.
    Replaying the same event is harmless.
    """
    raw_body = await request.body()
    signature = request.headers.get("x-payment-signature")
    _verify_payment_signature(raw_body, signature)

    try:
        body = json.loads(raw_body)
    except ValueError as e:
        logger.error("Invalid JSON in payment webhook: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON object expected")

    order_id = _parse_order_id(body.get("order_id"))

    try:
        payment_status = PaymentStatus.parse(body.get("status"))
    except ValueError:
        logger.warning("Unknown payment status for order %s: %s", order_id, body.get("status"))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown payment status")

    reference = body.get("reference") or body.get("transaction_id")
    order = service.update_payment_status(
        order_id,
        payment_status,
        reference=str(reference) if reference else None,
    )
    logger.info("Payment webhook processed for order %s: order is %s", order_id, order.status.value)
    return {"received": True, "order_status": order.status.value}
