from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.models import OrderStatus, PaymentStatus


class CheckoutItem(BaseModel):
    id: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)


class CreateOrderRequest(BaseModel):
    items: List[CheckoutItem] = []
    currency: Optional[str] = None
    metadata: Dict[str, str] = {}


class PaymentIntentSummary(BaseModel):
    id: str
    client_secret: str
    amount: int
    currency: str
    status: str


class EphemeralKeySummary(BaseModel):
    id: str
    secret: Optional[str] = None


class CreateOrderResponse(BaseModel):
    success: bool = True
    order_id: UUID
    order_number: str
    payment_intent: PaymentIntentSummary
    ephemeral_key: EphemeralKeySummary
    customer: str


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID] = None
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    quantity: int
    price: float


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    user_id: Optional[UUID] = None
    customer_email: str
    customer_name: Optional[str] = None
    subtotal: float
    shipping_cost: float
    tax_amount: float
    total_amount: float
    status: OrderStatus
    payment_status: PaymentStatus
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []
