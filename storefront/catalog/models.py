from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class CategorySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str


class CategoryResponse(CategorySummary):
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    alt: Optional[str] = None
    position: int


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str
    long_description: Optional[str] = None
    price: float
    compare_price: Optional[float] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    stock: int
    low_stock_threshold: int
    track_stock: bool
    weight: Optional[float] = None
    dimensions: Optional[str] = None
    category_id: UUID
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: bool
    is_featured: bool
    created_at: datetime
    updated_at: datetime
    category: Optional[CategorySummary] = None
    images: List[ProductImageResponse] = []


class ProductListResponse(BaseModel):
    products: List[ProductResponse]


class FeaturedProduct(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str
    price: float
    compare_price: Optional[float] = None
    stock: int
    image: Optional[str] = None
    category: Optional[CategorySummary] = None


class FeaturedProductsResponse(BaseModel):
    products: List[FeaturedProduct]


class ProductCreate(BaseModel):
    name: str = Field(min_length=2)
    description: str = Field(min_length=10)
    long_description: Optional[str] = None
    price: float = Field(ge=0.01)
    compare_price: Optional[float] = Field(default=None, ge=0)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    stock: int = Field(ge=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    track_stock: bool = True
    weight: Optional[float] = Field(default=None, ge=0)
    dimensions: Optional[str] = None
    category_id: UUID
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    images: Optional[List[HttpUrl]] = None


class ProductUpdate(BaseModel):
    """Partial update; ``images`` replaces the whole gallery when present."""
    name: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = Field(default=None, min_length=10)
    long_description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0.01)
    compare_price: Optional[float] = Field(default=None, ge=0)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    track_stock: Optional[bool] = None
    weight: Optional[float] = Field(default=None, ge=0)
    dimensions: Optional[str] = None
    category_id: Optional[UUID] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    images: Optional[List[HttpUrl]] = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None


class AdminCategoryResponse(CategoryResponse):
    products_count: int = 0
    created_at: datetime
