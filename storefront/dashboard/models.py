from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_orders: int
    total_spent: float
    favorite_products: int
    loyalty_points: int
    last_updated: datetime


class DashboardOrderProduct(BaseModel):
    id: Optional[UUID] = None
    name: str
    image: Optional[str] = None
    price: float
    quantity: int


class DashboardOrder(BaseModel):
    id: str
    order_id: UUID
    date: date
    status: str
    status_text: str
    total: float
    items: int
    tracking_number: Optional[str] = None
    products: List[DashboardOrderProduct] = []


class FavoriteRequest(BaseModel):
    product_id: Optional[UUID] = None


class FavoriteProduct(BaseModel):
    id: UUID
    name: str
    slug: str
    price: float
    image: Optional[str] = None
    in_stock: bool
    category_id: UUID
    added_at: datetime


class ActivityItem(BaseModel):
    id: str
    type: str
    message: str
    time: str
    icon: str
    link: Optional[str] = None
