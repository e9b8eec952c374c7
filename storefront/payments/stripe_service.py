# storefront/payments/stripe_service.py
"""Thin wrappers around the Stripe SDK used by checkout and the webhook."""

import json
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ErrorCode, PaymentError
from ..database.models import User
from ..logging import logger

stripe.api_key = settings.STRIPE_SECRET_KEY


def require_configured() -> None:
    if not settings.STRIPE_SECRET_KEY:
        raise PaymentError(
            ErrorCode.PAYMENT_NOT_CONFIGURED,
            "Payment provider is not configured",
            technical_details="STRIPE_SECRET_KEY is empty"
        )


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def get_or_create_customer(db: Session, user: User) -> str:
    """Stripe customer id for a user, creating and saving one if missing or deleted upstream."""
    require_configured()
    if user.stripe_customer_id:
        try:
            customer = stripe.Customer.retrieve(user.stripe_customer_id)
            if not getattr(customer, "deleted", False):
                return user.stripe_customer_id
        except stripe.InvalidRequestError as e:
            logger.warning(f"Stripe customer {user.stripe_customer_id} unavailable, creating a new one: {e}")

    customer = stripe.Customer.create(
        email=user.email,
        name=user.name or None,
        metadata={"userId": str(user.id)}
    )
    user.stripe_customer_id = customer.id
    db.commit()
    logger.info(f"Stripe customer {customer.id} created for user {user.id}")
    return customer.id


def create_payment_intent(
    amount: int,
    customer_id: str,
    metadata: Dict[str, str],
    currency: Optional[str] = None
):
    """Create a PaymentIntent for ``amount`` in the smallest currency unit."""
    require_configured()
    try:
        return stripe.PaymentIntent.create(
            amount=amount,
            currency=currency or settings.STRIPE_CURRENCY,
            customer=customer_id,
            metadata=metadata,
            automatic_payment_methods={"enabled": True}
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe PaymentIntent creation failed: {e}")
        raise PaymentError(
            ErrorCode.PAYMENT_FAILED,
            "Payment could not be created",
            technical_details=str(e)
        )


def create_ephemeral_key(customer_id: str):
    try:
        return stripe.EphemeralKey.create(customer=customer_id, stripe_version=settings.STRIPE_API_VERSION)
    except stripe.StripeError as e:
        logger.error(f"Stripe ephemeral key creation failed: {e}")
        raise PaymentError(
            ErrorCode.PAYMENT_FAILED,
            "Payment could not be created",
            technical_details=str(e)
        )


def retrieve_payment_intent(payment_intent_id: str):
    require_configured()
    try:
        return stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.InvalidRequestError as e:
        if "No such payment_intent" in str(e):
            raise PaymentError(
                ErrorCode.PAYMENT_NOT_FOUND,
                "Payment not found",
                context={"payment_intent_id": payment_intent_id}
            )
        raise PaymentError(ErrorCode.PAYMENT_FAILED, "Payment lookup failed", technical_details=str(e))
    except stripe.StripeError as e:
        logger.error(f"Stripe PaymentIntent retrieval failed: {e}")
        raise PaymentError(ErrorCode.PAYMENT_FAILED, "Payment lookup failed", technical_details=str(e))


def ensure_intent_owner(intent, user: User) -> None:
    """The intent must belong to the user's Stripe customer."""
    customer = getattr(intent, "customer", None)
    if not customer or not user.stripe_customer_id or customer != user.stripe_customer_id:
        raise PaymentError(
            ErrorCode.PAYMENT_FORBIDDEN,
            "Access to this payment is denied",
            context={"payment_intent_id": intent.id}
        )


def verify_webhook_payload(payload: bytes, signature: str) -> Dict[str, Any]:
    """Check the Stripe signature header and return the event as a plain dict.

    Raises ``stripe.SignatureVerificationError`` or ``ValueError``.
    """
    stripe.WebhookSignature.verify_header(
        payload.decode("utf-8"),
        signature,
        settings.STRIPE_WEBHOOK_SECRET,
        tolerance=stripe.Webhook.DEFAULT_TOLERANCE
    )
    return json.loads(payload)


def intent_summary(intent) -> Dict[str, Any]:
    return {
        "id": intent.id,
        "client_secret": intent.client_secret,
        "amount": intent.amount,
        "currency": intent.currency,
        "status": intent.status
    }


def intent_details(intent, fallback_email: str) -> Dict[str, Any]:
    return {
        "id": intent.id,
        "amount": intent.amount,
        "status": intent.status,
        "email": getattr(intent, "receipt_email", None) or fallback_email,
        "created": getattr(intent, "created", None),
        "currency": intent.currency,
        "description": getattr(intent, "description", None),
        "metadata": dict(getattr(intent, "metadata", None) or {})
    }


def ephemeral_key_summary(key) -> Dict[str, Any]:
    return {"id": key.id, "secret": key.secret}
