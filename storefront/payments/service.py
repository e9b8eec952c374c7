# storefront/payments/service.py

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from ..auth.models import TokenData
from ..catalog.service import invalidate_catalog_cache
from ..core.exceptions import ErrorCode, OrderNotFoundError, PaymentError
from ..database.models import Order, OrderItem, OrderStatus, PaymentStatus, Product
from ..email_service import send_order_confirmation_email
from ..logging import logger
from ..users.service import UserService
from . import stripe_service
from .models import CreatePaymentIntentRequest

SUCCEEDED = "payment_intent.succeeded"
FAILED = "payment_intent.payment_failed"
CANCELED = "payment_intent.canceled"
REQUIRES_ACTION = "payment_intent.requires_action"


def commit_stock(db: Session, order: Order) -> bool:
    """Decrement stock for a paid order once. Returns False when already done."""
    if order.stock_committed:
        return False
    for item in order.items:
        if not item.product_id:
            continue
        product = db.query(Product).filter(Product.id == item.product_id).with_for_update().first()
        if product and product.track_stock:
            product.stock = max(0, product.stock - item.quantity)
    order.stock_committed = True
    return True


def order_email_data(order: Order) -> Dict[str, Any]:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "total": order.total_amount,
        "items": [
            {"name": item.product_name or "Produit", "quantity": item.quantity, "price": item.price}
            for item in order.items
        ]
    }


class PaymentService:

    @staticmethod
    def create_intent_for_order(db: Session, current_user: TokenData, data: CreatePaymentIntentRequest) -> dict:
        """New PaymentIntent for an existing order of the caller."""
        if data.user_id != current_user.get_uuid():
            raise PaymentError(ErrorCode.PAYMENT_FORBIDDEN, "Access denied", context={"user_id": str(data.user_id)})

        order = db.query(Order).filter(Order.id == data.order_id).first()
        if not order or order.user_id != data.user_id:
            raise OrderNotFoundError(data.order_id)
        if data.amount != stripe_service.to_cents(order.total_amount):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect amount")

        user = UserService.get_user(db, data.user_id)
        customer_id = stripe_service.get_or_create_customer(db, user)
        intent = stripe_service.create_payment_intent(
            amount=data.amount,
            customer_id=customer_id,
            metadata={**data.metadata, "orderId": str(order.id), "userId": str(user.id)},
            currency=data.currency
        )
        if not getattr(intent, "client_secret", None):
            raise PaymentError(ErrorCode.PAYMENT_FAILED, "Payment could not be created")
        ephemeral_key = stripe_service.create_ephemeral_key(customer_id)

        order.payment_id = intent.id
        order.payment_status = PaymentStatus.PENDING
        db.commit()
        return {
            "payment_intent": stripe_service.intent_summary(intent),
            "ephemeral_key": stripe_service.ephemeral_key_summary(ephemeral_key)
        }

    @staticmethod
    def get_intent_details(db: Session, current_user: TokenData, payment_intent_id: str) -> dict:
        user = UserService.get_user(db, current_user.get_uuid())
        intent = stripe_service.retrieve_payment_intent(payment_intent_id)
        stripe_service.ensure_intent_owner(intent, user)
        return stripe_service.intent_details(intent, user.email)

    @staticmethod
    def validate_payment(db: Session, current_user: TokenData, payment_intent_id: Optional[str]) -> dict:
        """Order matching a succeeded PaymentIntent of the caller."""
        if not payment_intent_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="payment_intent_id is required")

        user = UserService.get_user(db, current_user.get_uuid())
        intent = stripe_service.retrieve_payment_intent(payment_intent_id)
        stripe_service.ensure_intent_owner(intent, user)
        if intent.status != "succeeded":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment has not succeeded")

        order = db.query(Order).filter(Order.payment_id == intent.id, Order.user_id == user.id).first()
        if not order:
            raise OrderNotFoundError(intent.id)
        return {
            "success": True,
            "order_number": order.order_number,
            "order_id": order.id,
            "status": order.status,
            "payment_status": order.payment_status,
            "total_amount": order.total_amount,
            "created_at": order.created_at
        }

    # --- Webhook ---

    @staticmethod
    def _order_for_intent(db: Session, intent: Dict[str, Any]) -> Optional[Order]:
        order_id = (intent.get("metadata") or {}).get("orderId")
        if not order_id:
            logger.error(f"PaymentIntent {intent.get('id')} has no orderId in metadata")
            return None
        try:
            order_uuid = UUID(order_id)
        except ValueError:
            logger.error(f"PaymentIntent {intent.get('id')} has an invalid orderId: {order_id}")
            return None
        order = db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product)
        ).filter(Order.id == order_uuid).first()
        if not order:
            logger.error(f"Order {order_id} from PaymentIntent {intent.get('id')} not found")
        return order

    @staticmethod
    async def handle_webhook_event(db: Session, event: Dict[str, Any]) -> bool:
        """Apply a verified Stripe event to its order. Returns False for ignored events."""
        event_type = event.get("type")
        intent = (event.get("data") or {}).get("object") or {}
        logger.info(f"Stripe event received: {event_type} {event.get('id')}")

        if event_type not in (SUCCEEDED, FAILED, CANCELED, REQUIRES_ACTION):
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return False

        order = PaymentService._order_for_intent(db, intent)
        if not order:
            return True

        if event_type == SUCCEEDED:
            await PaymentService._payment_succeeded(db, order, intent)
        elif event_type in (FAILED, CANCELED):
            order.payment_status = PaymentStatus.FAILED
            order.status = OrderStatus.CANCELLED
            db.commit()
            logger.info(f"Order {order.order_number} cancelled after {event_type}")
        else:
            order.payment_status = PaymentStatus.PENDING
            order.status = OrderStatus.PENDING
            db.commit()
            logger.info(f"Order {order.order_number} waiting for customer action")
        return True

    @staticmethod
    async def _payment_succeeded(db: Session, order: Order, intent: Dict[str, Any]) -> None:
        method_types = intent.get("payment_method_types") or []
        order.payment_status = PaymentStatus.PAID
        order.status = OrderStatus.CONFIRMED
        order.payment_method = method_types[0] if method_types else "card"
        first_time = commit_stock(db, order)
        db.commit()
        logger.info(f"Order {order.order_number} paid")

        if not first_time:
            logger.info(f"Order {order.order_number} was already fulfilled, skipping stock and email")
            return
        invalidate_catalog_cache()
        await send_order_confirmation_email(order.customer_email, order_email_data(order))
