# storefront/orders/controller.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status

from ..auth.service import CurrentUser
from ..core.exceptions import HANDLED_ERRORS
from ..core.rate_limiter import limiter
from ..database.core import DbSession
from ..logging import logger
from .models import CreateOrderRequest, CreateOrderResponse, OrderResponse
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/create-with-payment-intent", response_model=CreateOrderResponse)
@limiter.limit("20/minute")
async def create_with_payment_intent(
    request: Request,
    order_request: CreateOrderRequest,
    current_user: CurrentUser,
    db: DbSession
):
    """
    Create a pending order from the cart lines and open a Stripe PaymentIntent for it.

    Prices and stock are checked against the catalog before anything is written.
    """
    try:
        return OrderService.create_with_payment_intent(db, current_user, order_request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Order creation failed for user {current_user.user_id}: {e}")
        logger.exception("Order creation error details:")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order"
        )


@router.get("", response_model=List[OrderResponse])
async def list_orders(current_user: CurrentUser, db: DbSession):
    return OrderService.list_user_orders(db, current_user.get_uuid())


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, current_user: CurrentUser, db: DbSession):
    return OrderService.get_user_order(db, current_user.get_uuid(), order_id)
