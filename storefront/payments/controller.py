# storefront/payments/controller.py
import stripe
from fastapi import APIRouter, HTTPException, Request, status

from ..auth.service import CurrentUser
from ..core.config import settings
from ..core.exceptions import HANDLED_ERRORS
from ..database.core import DbSession
from ..logging import logger
from . import stripe_service
from .models import CreatePaymentIntentRequest
from .service import PaymentService

router = APIRouter(prefix="/stripe", tags=["payments"])


@router.post("/create-payment-intent")
async def create_payment_intent(
    intent_request: CreatePaymentIntentRequest,
    current_user: CurrentUser,
    db: DbSession
):
    try:
        return PaymentService.create_intent_for_order(db, current_user, intent_request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"PaymentIntent creation failed for order {intent_request.order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create payment"
        )


@router.get("/payment-intent/{payment_intent_id}")
async def get_payment_intent(payment_intent_id: str, current_user: CurrentUser, db: DbSession):
    """Details of one of the caller's PaymentIntents."""
    try:
        return PaymentService.get_intent_details(db, current_user, payment_intent_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"PaymentIntent lookup failed for {payment_intent_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve payment details"
        )


@router.post("/webhook")
async def stripe_webhook(request: Request, db: DbSession):
    """
    Handle Stripe payment events.
    Called by Stripe, authenticated by the signature header instead of a user token.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.error("Missing Stripe signature header in webhook")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook is not configured"
        )

    try:
        event = stripe_service.verify_webhook_payload(payload, signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Invalid Stripe webhook: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

    try:
        await PaymentService.handle_webhook_event(db, event)
        return {"received": True}
    except Exception as e:
        logger.error(f"Webhook processing error: {e}")
        logger.exception("Full webhook error details:")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook"
        )
