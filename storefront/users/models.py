from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Preferences(BaseModel):
    newsletter: bool = False
    promotions: bool = False


class CompleteProfile(BaseModel):
    """Profile with addresses and preferences"""
    id: UUID
    name: str
    email: EmailStr
    email_verified: bool
    phone: Optional[str] = None
    image: Optional[str] = None
    role: str
    shipping_address: Address
    billing_address: Address
    use_same_address: bool
    preferences: Preferences
    created_at: datetime


class CompleteProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    use_same_address: Optional[bool] = None
    preferences: Optional[Preferences] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    image: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    email_verified: bool
    phone: Optional[str] = None
    image: Optional[str] = None
    role: str
