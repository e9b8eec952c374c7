# storefront/dashboard/service.py

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..catalog.service import CatalogService
from ..database.core import utcnow
from ..database.models import Favorite, Order, OrderItem, OrderStatus, Product
from ..logging import logger
from .models import ActivityItem, DashboardOrder, DashboardOrderProduct, DashboardStats, FavoriteProduct

# Order status -> (display status, label)
STATUS_DISPLAY = {
    OrderStatus.PENDING: ("processing", "En attente"),
    OrderStatus.CONFIRMED: ("processing", "Confirmée"),
    OrderStatus.PROCESSING: ("processing", "En préparation"),
    OrderStatus.SHIPPED: ("shipped", "Expédiée"),
    OrderStatus.DELIVERED: ("delivered", "Livrée"),
    OrderStatus.CANCELLED: ("cancelled", "Annulée"),
    OrderStatus.REFUNDED: ("cancelled", "Remboursée"),
}
DEFAULT_DISPLAY = ("processing", "En cours")

ACTIVITY_ORDERS = 5
ACTIVITY_RECOMMENDATIONS = 2
RECOMMENDATION_MAX_AGE_DAYS = 7
ACTIVITY_LIMIT = 10
ORDERS_LINK = "/dashboard/orders"


def display_status(order_status: OrderStatus):
    return STATUS_DISPLAY.get(order_status, DEFAULT_DISPLAY)


def _plural(count: int, unit: str) -> str:
    return f"Il y a {count} {unit}{'s' if count > 1 else ''}"


def relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    """French "time ago" text: days, then hours, then "a few minutes"."""
    elapsed = (now or utcnow()) - moment
    hours = int(elapsed.total_seconds() // 3600)
    days = hours // 24
    if days > 0:
        return _plural(days, "jour")
    if hours > 0:
        return _plural(hours, "heure")
    return "Il y a quelques minutes"


class DashboardService:

    @staticmethod
    def get_stats(db: Session, user_id: UUID) -> DashboardStats:
        """Totals for the customer dashboard. Only delivered orders count as spent."""
        total_orders = db.query(func.count(Order.id)).filter(Order.user_id == user_id).scalar() or 0
        total_spent = db.query(func.coalesce(func.sum(Order.total_amount), 0.0)).filter(
            Order.user_id == user_id,
            Order.status == OrderStatus.DELIVERED
        ).scalar() or 0.0
        favorites = db.query(func.count(Favorite.id)).filter(Favorite.user_id == user_id).scalar() or 0
        return DashboardStats(
            total_orders=total_orders,
            total_spent=round(float(total_spent), 2),
            favorite_products=favorites,
            loyalty_points=math.floor(total_spent),
            last_updated=utcnow()
        )

    @staticmethod
    def list_orders(db: Session, user_id: UUID) -> List[DashboardOrder]:
        orders = db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product).selectinload(Product.images)
        ).filter(Order.user_id == user_id).order_by(Order.created_at.desc()).all()

        result = []
        for order in orders:
            status, text = display_status(order.status)
            result.append(DashboardOrder(
                id=order.order_number,
                order_id=order.id,
                date=order.created_at.date(),
                status=status,
                status_text=text,
                total=order.total_amount,
                items=len(order.items),
                tracking_number=order.tracking_number,
                products=[
                    DashboardOrderProduct(
                        id=item.product_id,
                        name=item.product_name or "Produit indisponible",
                        image=item.product_image,
                        price=item.price,
                        quantity=item.quantity
                    )
                    for item in order.items
                ]
            ))
        return result

    @staticmethod
    def get_activity(db: Session, user_id: UUID, now: Optional[datetime] = None) -> List[ActivityItem]:
        """
        Recent events for the dashboard feed.

        Built from the user's latest orders (creation, shipment, delivery and
        the loyalty points a delivery earns) followed by products added to the
        catalog during the last week. Order events come first.
        """
        now = now or utcnow()
        orders = db.query(Order).filter(Order.user_id == user_id).order_by(
            Order.created_at.desc()
        ).limit(ACTIVITY_ORDERS).all()
        new_products = db.query(Product).filter(Product.is_active.is_(True)).order_by(
            Product.created_at.desc()
        ).limit(ACTIVITY_RECOMMENDATIONS).all()

        order_events = []
        other_events = []
        for order in orders:
            order_events.append(ActivityItem(
                id=f"order-created-{order.id}",
                type="order",
                message=f"Votre commande {order.order_number} a été créée",
                time=relative_time(order.created_at, now),
                icon="📦",
                link=ORDERS_LINK
            ))
            if order.status == OrderStatus.SHIPPED and order.shipped_at:
                order_events.append(ActivityItem(
                    id=f"order-shipped-{order.id}",
                    type="order",
                    message=f"Votre commande {order.order_number} a été expédiée",
                    time=relative_time(order.shipped_at, now),
                    icon="🚚",
                    link=ORDERS_LINK
                ))
            if order.status == OrderStatus.DELIVERED and order.delivered_at:
                delivered = relative_time(order.delivered_at, now)
                order_events.append(ActivityItem(
                    id=f"order-delivered-{order.id}",
                    type="order",
                    message=f"Votre commande {order.order_number} a été livrée",
                    time=delivered,
                    icon="✅",
                    link=ORDERS_LINK
                ))
                other_events.append(ActivityItem(
                    id=f"points-earned-{order.id}",
                    type="points",
                    message=f"Vous avez gagné {math.floor(order.total_amount)} points de fidélité",
                    time=delivered,
                    icon="🎉"
                ))

        for product in new_products:
            if (now - product.created_at).days > RECOMMENDATION_MAX_AGE_DAYS:
                continue
            other_events.append(ActivityItem(
                id=f"recommendation-{product.id}",
                type="recommendation",
                message=f"Nouveau produit recommandé: {product.name}",
                time=relative_time(product.created_at, now),
                icon="✨",
                link=f"/products/{product.slug}"
            ))

        return (order_events + other_events)[:ACTIVITY_LIMIT]

    # --- Favorites ---

    @staticmethod
    def list_favorites(db: Session, user_id: UUID) -> List[FavoriteProduct]:
        favorites = db.query(Favorite).options(
            selectinload(Favorite.product).selectinload(Product.images)
        ).filter(Favorite.user_id == user_id).order_by(Favorite.created_at.desc()).all()
        return [
            FavoriteProduct(
                id=fav.product.id,
                name=fav.product.name,
                slug=fav.product.slug,
                price=fav.product.price,
                image=fav.product.first_image,
                in_stock=fav.product.stock > 0,
                category_id=fav.product.category_id,
                added_at=fav.created_at
            )
            for fav in favorites
            if fav.product
        ]

    @staticmethod
    def add_favorite(db: Session, user_id: UUID, product_id: UUID) -> bool:
        """Returns False when the product was already a favorite."""
        CatalogService.get_product(db, product_id)
        existing = db.query(Favorite.id).filter(
            Favorite.user_id == user_id,
            Favorite.product_id == product_id
        ).first()
        if existing:
            return False

        db.add(Favorite(user_id=user_id, product_id=product_id))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False
        logger.info(f"Product {product_id} added to favorites of user {user_id}")
        return True

    @staticmethod
    def remove_favorite(db: Session, user_id: UUID, product_id: UUID) -> bool:
        removed = db.query(Favorite).filter(
            Favorite.user_id == user_id,
            Favorite.product_id == product_id
        ).delete()
        db.commit()
        return bool(removed)
