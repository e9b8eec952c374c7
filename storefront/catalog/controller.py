# storefront/catalog/controller.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from ..core.config import settings
from ..core.exceptions import HANDLED_ERRORS
from ..database.core import DbSession
from ..logging import logger
from .models import FeaturedProductsResponse, ProductListResponse, ProductResponse
from .service import CatalogService

router = APIRouter(tags=["catalog"])


def _cache_headers(response: Response, max_age: int) -> None:
    response.headers["Cache-Control"] = f"public, s-maxage={max_age}, stale-while-revalidate={max_age * 2}"


@router.get("/categories")
async def list_categories(response: Response, db: DbSession):
    """Active categories sorted by name."""
    try:
        categories = CatalogService.get_active_categories(db)
        _cache_headers(response, settings.CATEGORIES_CACHE_SECONDS)
        return {"categories": categories}
    except Exception as e:
        logger.error(f"Failed to list categories: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve categories"
        )


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    db: DbSession,
    category_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(True),
    is_featured: Optional[bool] = Query(None),
    slug: Optional[str] = Query(None)
):
    """Catalog listing, newest first, with category and ordered images."""
    try:
        products = CatalogService.list_products(
            db,
            category_id=category_id,
            is_active=is_active,
            is_featured=is_featured,
            slug=slug
        )
        return {"products": products}
    except Exception as e:
        logger.error(f"Failed to list products: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve products"
        )


@router.get("/products/featured", response_model=FeaturedProductsResponse)
async def featured_products(
    response: Response,
    db: DbSession,
    limit: int = Query(settings.FEATURED_DEFAULT_LIMIT, ge=1)
):
    try:
        products = CatalogService.get_featured_products(db, limit)
        _cache_headers(response, settings.FEATURED_CACHE_SECONDS)
        return {"products": products}
    except Exception as e:
        logger.error(f"Failed to list featured products: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve featured products"
        )


@router.get("/products/{slug}", response_model=ProductResponse)
async def get_product(slug: str, db: DbSession):
    try:
        return CatalogService.get_product_by_slug(db, slug)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Failed to load product {slug}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve product"
        )
