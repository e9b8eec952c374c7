from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ShippingType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


class ShippingZone(BaseModel):
    id: str
    name: str
    description: str
    countries: List[str]
    is_active: bool = True
    display_order: int


class EstimatedDays(BaseModel):
    min: int
    max: int


class ShippingMethod(BaseModel):
    id: str
    name: str
    description: str
    carrier: str
    type: ShippingType
    estimated_days: EstimatedDays
    is_active: bool = True
    zone_id: str


class ShippingRate(BaseModel):
    """Price for one method within a weight bracket, in grams and euros."""
    id: str
    method_id: str
    weight_from: float
    weight_to: float
    price: float
    free_shipping_threshold: Optional[float] = None


class EstimatedDelivery(BaseModel):
    min: datetime
    max: datetime


class ShippingCalculation(BaseModel):
    zone: ShippingZone
    method: ShippingMethod
    rate: ShippingRate
    price: float
    is_free: bool
    estimated_delivery: EstimatedDelivery


class ShippingRequest(BaseModel):
    country: str
    postal_code: str = ""
    weight: float = Field(description="Total weight in grams")
    value: float = Field(description="Order value in euros")


class ShippingResponse(BaseModel):
    available_methods: List[ShippingCalculation] = []
    default_method: Optional[ShippingCalculation] = None
    errors: List[str] = []
