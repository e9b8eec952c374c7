# storefront/orders/service.py

import secrets
import string
import time
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from ..auth.models import TokenData
from ..core.config import settings
from ..core.exceptions import (
    EmptyCartError, ErrorCode, OrderNotFoundError, OutOfStockError, PaymentError, PriceMismatchError,
)
from ..database.models import Order, OrderItem, OrderStatus, PaymentStatus, Product, User
from ..logging import logger
from ..payments import stripe_service
from ..shipping.service import calculate_order_weight, default_shipping_option
from ..users.service import UserService
from .models import CheckoutItem, CreateOrderRequest

ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(timestamp_ms: Optional[int] = None) -> str:
    """``ORD-<epoch ms>-<9 random chars>``"""
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(ORDER_SUFFIX_ALPHABET) for _ in range(9))
    return f"ORD-{stamp}-{suffix}"


def _parse_product_id(raw: str) -> Optional[UUID]:
    try:
        return UUID(raw)
    except ValueError:
        return None


class OrderService:

    @staticmethod
    def price_items(db: Session, items: List[CheckoutItem]) -> List[Tuple[Product, CheckoutItem]]:
        """Match checkout lines with catalog products, checking price and stock."""
        if not items:
            raise EmptyCartError()

        ids = [_parse_product_id(item.id) for item in items]
        products: Dict[UUID, Product] = {}
        if all(ids):
            products = {
                p.id: p for p in db.query(Product).filter(Product.id.in_(ids), Product.is_active.is_(True)).all()
            }
        # One line per product; repeated ids count as unknown
        if not all(ids) or len(products) != len(ids):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Some products no longer exist"
            )

        priced = []
        for product_id, item in zip(ids, items):
            product = products[product_id]
            if abs(product.price - item.price) > settings.PRICE_TOLERANCE:
                raise PriceMismatchError(product.name, expected=product.price, received=item.price)
            if product.track_stock and product.stock < item.quantity:
                raise OutOfStockError(product.name, available=product.stock, requested=item.quantity)
            priced.append((product, item))
        return priced

    @staticmethod
    def create_order(db: Session, user: User, priced: List[Tuple[Product, CheckoutItem]]) -> Order:
        """Persist a PENDING order with addresses from the profile and the default shipping option."""
        subtotal = round(sum(product.price * item.quantity for product, item in priced), 2)
        weight = calculate_order_weight((product.weight, item.quantity) for product, item in priced)

        shipping_address = UserService.shipping_address(user).model_dump()
        billing_address = UserService.billing_address(user).model_dump()
        option = default_shipping_option(shipping_address["country"], weight, subtotal)
        shipping_cost = option.price if option else 0.0
        tax_amount = 0.0

        order = Order(
            order_number=generate_order_number(),
            user_id=user.id,
            customer_email=user.email,
            customer_name=user.name or "Client",
            customer_phone=user.phone,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            total_amount=round(subtotal + shipping_cost + tax_amount, 2),
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            shipping_method=option.method.name if option else None,
            shipping_address=shipping_address,
            billing_address=billing_address,
            items=[
                OrderItem(product_id=product.id, quantity=item.quantity, price=product.price)
                for product, item in priced
            ]
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info(f"Order {order.order_number} created for user {user.id}: total {order.total_amount}")
        return order

    @staticmethod
    def create_with_payment_intent(db: Session, current_user: TokenData, data: CreateOrderRequest) -> dict:
        user = UserService.get_user(db, current_user.get_uuid())
        priced = OrderService.price_items(db, data.items)
        stripe_service.require_configured()
        order = OrderService.create_order(db, user, priced)

        try:
            customer_id = stripe_service.get_or_create_customer(db, user)
            intent = stripe_service.create_payment_intent(
                amount=stripe_service.to_cents(order.total_amount),
                customer_id=customer_id,
                metadata={**data.metadata, "orderId": str(order.id), "userId": str(user.id)},
                currency=data.currency
            )
            if not getattr(intent, "client_secret", None):
                raise PaymentError(
                    ErrorCode.PAYMENT_FAILED,
                    "Payment could not be created",
                    technical_details=f"PaymentIntent {intent.id} has no client secret"
                )
        except Exception:
            logger.warning(f"Removing order {order.order_number} after payment setup failure")
            db.rollback()
            db.delete(order)
            db.commit()
            raise

        order.payment_id = intent.id
        db.commit()
        ephemeral_key = stripe_service.create_ephemeral_key(customer_id)

        return {
            "success": True,
            "order_id": order.id,
            "order_number": order.order_number,
            "payment_intent": stripe_service.intent_summary(intent),
            "ephemeral_key": stripe_service.ephemeral_key_summary(ephemeral_key),
            "customer": customer_id
        }

    @staticmethod
    def list_user_orders(db: Session, user_id: UUID) -> List[Order]:
        return db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product)
        ).filter(Order.user_id == user_id).order_by(Order.created_at.desc()).all()

    @staticmethod
    def get_user_order(db: Session, user_id: UUID, order_id: UUID) -> Order:
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
        if not order:
            raise OrderNotFoundError(order_id)
        return order
