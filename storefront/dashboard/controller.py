# storefront/dashboard/controller.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from ..auth.service import CurrentUser
from ..core.exceptions import HANDLED_ERRORS
from ..database.core import DbSession
from ..logging import logger
from ..payments.models import ValidatePaymentRequest
from ..payments.service import PaymentService
from .models import ActivityItem, DashboardOrder, DashboardStats, FavoriteProduct, FavoriteRequest
from .service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_stats(current_user: CurrentUser, db: DbSession):
    return DashboardService.get_stats(db, current_user.get_uuid())


@router.get("/orders", response_model=List[DashboardOrder])
async def get_orders(current_user: CurrentUser, db: DbSession):
    """The user's orders, newest first, with display statuses."""
    return DashboardService.list_orders(db, current_user.get_uuid())


@router.get("/activity", response_model=List[ActivityItem])
async def get_activity(current_user: CurrentUser, db: DbSession):
    """Latest order events and new products, order events first."""
    try:
        return DashboardService.get_activity(db, current_user.get_uuid())
    except Exception as e:
        logger.error(f"Failed to load dashboard activity for user {current_user.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load activity"
        )


@router.get("/favorites", response_model=List[FavoriteProduct])
async def get_favorites(current_user: CurrentUser, db: DbSession):
    return DashboardService.list_favorites(db, current_user.get_uuid())


@router.post("/favorites", status_code=status.HTTP_201_CREATED)
async def add_favorite(favorite_request: FavoriteRequest, current_user: CurrentUser, db: DbSession):
    if not favorite_request.product_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="product_id is required")
    added = DashboardService.add_favorite(db, current_user.get_uuid(), favorite_request.product_id)
    return {
        "success": True,
        "message": "Product added to favorites" if added else "Product already in favorites"
    }


@router.delete("/favorites/{product_id}")
async def remove_favorite(product_id: UUID, current_user: CurrentUser, db: DbSession):
    DashboardService.remove_favorite(db, current_user.get_uuid(), product_id)
    return {"success": True, "message": "Product removed from favorites"}


@router.post("/validate-payment")
async def validate_payment(validate_request: ValidatePaymentRequest, current_user: CurrentUser, db: DbSession):
    """Order matching a succeeded payment, shown on the confirmation page."""
    try:
        return PaymentService.validate_payment(db, current_user, validate_request.payment_intent_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Payment validation failed for {validate_request.payment_intent_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate payment"
        )
