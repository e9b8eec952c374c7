# storefront/admin/service.py

import math
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from ..auth.models import TokenData
from ..auth.service import revoke_other_sessions
from ..core.config import settings
from ..core.exceptions import DuplicateResourceError, OrderNotFoundError, PermissionDeniedError, UserNotFoundError
from ..database.core import utcnow
from ..database.models import (
    Category, Order, OrderItem, OrderStatus, PaymentStatus, Product, User, UserRole,
)
from ..logging import logger
from .models import (
    AdminOrder, AdminOrderItem, AdminOrderList, AdminOrderUpdate, AdminStats, AdminUserResponse, AdminUserCreate,
    AdminUserList, AdminUserUpdate, BanRequest, SortOrder, UserSortField,
)

ACTIVE_USER_WINDOW_DAYS = 30


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class AdminUserService:

    @staticmethod
    def _order_stats(db: Session, user_ids: List[UUID]) -> Dict[UUID, Tuple[int, float]]:
        if not user_ids:
            return {}
        rows = db.query(
            Order.user_id,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), 0.0)
        ).filter(Order.user_id.in_(user_ids)).group_by(Order.user_id).all()
        return {user_id: (count, float(total)) for user_id, count, total in rows}

    @staticmethod
    def _to_admin_user(user: User, stats: Tuple[int, float] = (0, 0.0)) -> AdminUserResponse:
        return AdminUserResponse.model_validate(user).model_copy(
            update={"orders_count": stats[0], "total_spent": round(stats[1], 2)}
        )

    @staticmethod
    def get_user(db: Session, user_id: UUID) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError()
        return user

    @staticmethod
    def describe(db: Session, user: User) -> AdminUserResponse:
        stats = AdminUserService._order_stats(db, [user.id]).get(user.id, (0, 0.0))
        return AdminUserService._to_admin_user(user, stats)

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        banned: Optional[bool] = None,
        email_verified: Optional[bool] = None,
        sort_by: UserSortField = UserSortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC
    ) -> AdminUserList:
        query = db.query(User)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))
        if role:
            query = query.filter(User.role == role.value)
        if banned is not None:
            query = query.filter(User.banned.is_(banned))
        if email_verified is not None:
            query = query.filter(User.email_verified.is_(email_verified))

        total = query.count()
        column = getattr(User, sort_by.value)
        query = query.order_by(column.asc() if sort_order == SortOrder.ASC else column.desc())
        users = query.offset((page - 1) * limit).limit(limit).all()

        stats = AdminUserService._order_stats(db, [u.id for u in users])
        return AdminUserList(
            users=[AdminUserService._to_admin_user(u, stats.get(u.id, (0, 0.0))) for u in users],
            page=page,
            limit=limit,
            total=total,
            total_pages=_page_count(total, limit)
        )

    @staticmethod
    def create_user(db: Session, data: AdminUserCreate) -> AdminUserResponse:
        email = data.email.lower()
        if db.query(User.id).filter(User.email == email).first():
            raise DuplicateResourceError("user", "email", email)

        user = User(name=data.name, email=email, role=data.role.value, email_verified=data.email_verified)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Admin created user {user.email} with role {user.role}")
        return AdminUserService._to_admin_user(user)

    @staticmethod
    def update_user(db: Session, admin: TokenData, user_id: UUID, data: AdminUserUpdate) -> AdminUserResponse:
        user = AdminUserService.get_user(db, user_id)
        changes = data.model_dump(exclude_unset=True)

        if user.id == admin.get_uuid() and changes.get("role") not in (None, UserRole.ADMIN):
            raise PermissionDeniedError("You cannot change your own role")
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            if db.query(User.id).filter(User.email == changes["email"], User.id != user.id).first():
                raise DuplicateResourceError("user", "email", changes["email"])
        if changes.get("role"):
            changes["role"] = changes["role"].value

        for field, value in changes.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return AdminUserService.describe(db, user)

    @staticmethod
    def delete_user(db: Session, admin: TokenData, user_id: UUID) -> None:
        if user_id == admin.get_uuid():
            raise PermissionDeniedError("You cannot delete your own account")
        user = AdminUserService.get_user(db, user_id)
        db.delete(user)
        db.commit()
        logger.info(f"Admin {admin.user_id} deleted user {user_id}")

    @staticmethod
    def ban_user(db: Session, admin: TokenData, user_id: UUID, data: BanRequest) -> AdminUserResponse:
        """Ban a user and end all of their sessions."""
        if not data.reason or not data.reason.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ban reason is required")
        if user_id == admin.get_uuid():
            raise PermissionDeniedError("You cannot ban yourself")

        user = AdminUserService.get_user(db, user_id)
        user.banned = True
        user.ban_reason = data.reason.strip()
        user.ban_expires = _naive_utc(data.expires_at) if data.expires_at else None
        db.commit()
        revoked = revoke_other_sessions(db, user.id)
        logger.info(f"Admin {admin.user_id} banned user {user.id}, {revoked} session(s) revoked")
        db.refresh(user)
        return AdminUserService.describe(db, user)

    @staticmethod
    def unban_user(db: Session, user_id: UUID) -> AdminUserResponse:
        user = AdminUserService.get_user(db, user_id)
        user.banned = False
        user.ban_reason = None
        user.ban_expires = None
        db.commit()
        db.refresh(user)
        return AdminUserService.describe(db, user)

    @staticmethod
    def set_role(db: Session, admin: TokenData, user_id: UUID, role: UserRole) -> AdminUserResponse:
        if user_id == admin.get_uuid():
            raise PermissionDeniedError("You cannot change your own role")
        user = AdminUserService.get_user(db, user_id)
        user.role = role.value
        db.commit()
        db.refresh(user)
        logger.info(f"Admin {admin.user_id} set role of {user.id} to {role.value}")
        return AdminUserService.describe(db, user)


class AdminOrderService:

    @staticmethod
    def _to_admin_order(order: Order) -> AdminOrder:
        user = order.user
        return AdminOrder(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.user_id,
            customer_name=(user.name if user else None) or order.customer_name,
            customer_email=(user.email if user else None) or order.customer_email,
            customer_avatar=user.image if user else None,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            tracking_number=order.tracking_number,
            created_at=order.created_at,
            shipping_address=order.shipping_address,
            items=[
                AdminOrderItem(
                    id=item.id,
                    product_id=item.product_id,
                    product_name=item.product_name or "Produit supprimé",
                    product_image=item.product_image,
                    quantity=item.quantity,
                    price=item.price,
                    total=round(item.price * item.quantity, 2)
                )
                for item in order.items
            ],
            items_count=len(order.items)
        )

    @staticmethod
    def _with_details(query):
        return query.options(
            selectinload(Order.user),
            selectinload(Order.items).selectinload(OrderItem.product).selectinload(Product.images)
        )

    @staticmethod
    def list_orders(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        sort_order: SortOrder = SortOrder.DESC
    ) -> AdminOrderList:
        query = db.query(Order).outerjoin(User, Order.user_id == User.id)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Order.order_number).like(pattern),
                func.lower(Order.customer_name).like(pattern),
                func.lower(Order.customer_email).like(pattern),
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern)
            ))
        if order_status:
            query = query.filter(Order.status == order_status)
        if payment_status:
            query = query.filter(Order.payment_status == payment_status)

        total = query.count()
        ordering = Order.created_at.asc() if sort_order == SortOrder.ASC else Order.created_at.desc()
        orders = AdminOrderService._with_details(query).order_by(ordering).offset((page - 1) * limit).limit(limit).all()
        return AdminOrderList(
            orders=[AdminOrderService._to_admin_order(o) for o in orders],
            page=page,
            limit=limit,
            total=total,
            total_pages=_page_count(total, limit)
        )

    @staticmethod
    def update_order(db: Session, data: AdminOrderUpdate) -> AdminOrder:
        order = AdminOrderService._with_details(db.query(Order)).filter(Order.id == data.order_id).first()
        if not order:
            raise OrderNotFoundError(data.order_id)

        for field, value in data.model_dump(exclude_unset=True, exclude={"order_id"}).items():
            setattr(order, field, value)
        if order.status == OrderStatus.SHIPPED and not order.shipped_at:
            order.shipped_at = utcnow()
        if order.status == OrderStatus.DELIVERED and not order.delivered_at:
            order.delivered_at = utcnow()
        db.commit()
        db.refresh(order)
        logger.info(f"Order {order.order_number} updated: status={order.status.value}, payment={order.payment_status.value}")
        return AdminOrderService._to_admin_order(order)


class AdminStatsService:

    @staticmethod
    def get_stats(db: Session) -> AdminStats:
        now = utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        active_since = now - timedelta(days=ACTIVE_USER_WINDOW_DAYS)

        revenue = db.query(func.coalesce(func.sum(Order.total_amount), 0.0)).filter(
            Order.status == OrderStatus.DELIVERED,
            Order.payment_status == PaymentStatus.PAID
        ).scalar() or 0.0

        return AdminStats(
            total_users=db.query(func.count(User.id)).scalar() or 0,
            total_products=db.query(func.count(Product.id)).scalar() or 0,
            total_categories=db.query(func.count(Category.id)).scalar() or 0,
            total_orders=db.query(func.count(Order.id)).scalar() or 0,
            total_revenue=round(float(revenue), 2),
            new_users_today=db.query(func.count(User.id)).filter(User.created_at >= start_of_day).scalar() or 0,
            new_orders_today=db.query(func.count(Order.id)).filter(Order.created_at >= start_of_day).scalar() or 0,
            active_users=db.query(func.count(User.id)).filter(User.last_login >= active_since).scalar() or 0,
            low_stock_products=db.query(func.count(Product.id)).filter(
                Product.track_stock.is_(True),
                Product.stock <= settings.LOW_STOCK_THRESHOLD
            ).scalar() or 0,
            last_updated=now
        )
