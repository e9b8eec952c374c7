from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..database.models import OrderStatus, PaymentStatus, UserRole


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class UserSortField(str, Enum):
    CREATED_AT = "created_at"
    NAME = "name"
    EMAIL = "email"
    ROLE = "role"


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    email_verified: bool
    role: UserRole
    banned: bool
    ban_reason: Optional[str] = None
    ban_expires: Optional[datetime] = None
    created_at: datetime
    image: Optional[str] = None
    phone: Optional[str] = None
    orders_count: int = 0
    total_spent: float = 0.0


class AdminUserList(BaseModel):
    users: List[AdminUserResponse]
    page: int
    limit: int
    total: int
    total_pages: int


class AdminUserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: UserRole = UserRole.USER
    email_verified: bool = False


class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    email_verified: Optional[bool] = None
    phone: Optional[str] = None
    image: Optional[str] = None


class BanRequest(BaseModel):
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


class RoleRequest(BaseModel):
    role: UserRole


class AdminOrderItem(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    product_name: str
    product_image: Optional[str] = None
    quantity: int
    price: float
    total: float


class AdminOrder(BaseModel):
    id: UUID
    order_number: str
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    customer_email: str
    customer_avatar: Optional[str] = None
    total_amount: float
    status: OrderStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str] = None
    created_at: datetime
    shipping_address: Optional[Dict[str, Any]] = None
    items: List[AdminOrderItem]
    items_count: int


class AdminOrderList(BaseModel):
    orders: List[AdminOrder]
    page: int
    limit: int
    total: int
    total_pages: int


class AdminOrderUpdate(BaseModel):
    order_id: UUID
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = None


class AdminStats(BaseModel):
    total_users: int
    total_products: int
    total_categories: int
    total_orders: int
    total_revenue: float
    new_users_today: int
    new_orders_today: int
    active_users: int
    low_stock_products: int
    last_updated: datetime
