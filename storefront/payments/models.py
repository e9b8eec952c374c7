from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CreatePaymentIntentRequest(BaseModel):
    amount: int = Field(description="Amount in cents")
    currency: Optional[str] = None
    order_id: UUID
    user_id: UUID
    metadata: Dict[str, str] = {}


class ValidatePaymentRequest(BaseModel):
    payment_intent_id: Optional[str] = None
