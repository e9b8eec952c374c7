# storefront/catalog/service.py

import re
import time
import unicodedata
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.cache import CacheTags, catalog_cache
from ..core.config import settings
from ..core.exceptions import (
    CategoryNotFoundError, DuplicateResourceError, ProductNotFoundError, ResourceInUseError,
)
from ..database.models import Category, Favorite, Product, ProductImage
from ..logging import logger
from .models import (
    AdminCategoryResponse, CategoryCreate, CategoryResponse, CategorySummary, CategoryUpdate,
    FeaturedProduct, ProductCreate, ProductUpdate,
)


def generate_slug(name: str) -> str:
    """Lowercase, accent-free, hyphen-separated slug."""
    normalized = unicodedata.normalize("NFD", name.lower())
    slug = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def generate_sku(name: str, timestamp_ms: Optional[int] = None) -> str:
    """First six alphanumerics of the name plus the last six digits of a timestamp."""
    base = re.sub(r"[^A-Z0-9]", "", name.upper())[:6]
    stamp = str(timestamp_ms if timestamp_ms is not None else int(time.time() * 1000))[-6:]
    return f"{base}-{stamp}"


def _unique_value(db: Session, column, base: str, exclude_id: Optional[UUID] = None) -> str:
    """Append -1, -2, ... to ``base`` until no other row uses it."""
    model = column.class_
    candidate = base
    counter = 1
    while True:
        query = db.query(model.id).filter(column == candidate)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if not query.first():
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1


def invalidate_catalog_cache() -> None:
    catalog_cache.invalidate_tags(CacheTags.PRODUCTS, CacheTags.CATEGORIES, CacheTags.FEATURED_PRODUCTS)


class CatalogService:

    # --- Public reads ---

    @staticmethod
    def get_active_categories(db: Session) -> List[dict]:
        """Active categories by name, served from the cache for 15 minutes."""
        def load():
            categories = db.query(Category).filter(Category.is_active.is_(True)).order_by(Category.name.asc()).all()
            return [CategoryResponse.model_validate(c).model_dump(mode="json") for c in categories]

        return catalog_cache.get_or_set(
            catalog_cache.generate_key("categories", {"scope": "active"}),
            load,
            ttl=settings.CATEGORIES_CACHE_SECONDS,
            tags=[CacheTags.CATEGORIES]
        )

    @staticmethod
    def list_products(
        db: Session,
        category_id: Optional[UUID] = None,
        is_active: Optional[bool] = None,
        is_featured: Optional[bool] = None,
        slug: Optional[str] = None
    ) -> List[Product]:
        query = db.query(Product).options(
            selectinload(Product.category),
            selectinload(Product.images)
        )
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if is_active is not None:
            query = query.filter(Product.is_active.is_(is_active))
        if is_featured is not None:
            query = query.filter(Product.is_featured.is_(is_featured))
        if slug:
            query = query.filter(Product.slug == slug)
        return query.order_by(Product.created_at.desc()).all()

    @staticmethod
    def get_featured_products(db: Session, limit: int = settings.FEATURED_DEFAULT_LIMIT) -> List[dict]:
        """Featured, active, in-stock products with their first image only."""
        safe_limit = max(1, min(limit, settings.FEATURED_MAX_LIMIT))

        def load():
            products = db.query(Product).options(
                selectinload(Product.category),
                selectinload(Product.images)
            ).filter(
                Product.is_featured.is_(True),
                Product.is_active.is_(True),
                Product.stock > 0
            ).order_by(Product.created_at.desc()).limit(safe_limit).all()
            return [
                FeaturedProduct(
                    id=p.id,
                    name=p.name,
                    slug=p.slug,
                    description=p.description,
                    price=p.price,
                    compare_price=p.compare_price,
                    stock=p.stock,
                    image=p.first_image,
                    category=CategorySummary.model_validate(p.category) if p.category else None
                ).model_dump(mode="json")
                for p in products
            ]

        return catalog_cache.get_or_set(
            catalog_cache.generate_key("featured", {"limit": safe_limit}),
            load,
            ttl=settings.FEATURED_CACHE_SECONDS,
            tags=[CacheTags.FEATURED_PRODUCTS, CacheTags.PRODUCTS]
        )

    @staticmethod
    def get_product(db: Session, product_id: UUID) -> Product:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFoundError(product_id)
        return product

    @staticmethod
    def get_active_product(db: Session, product_id: UUID) -> Product:
        product = CatalogService.get_product(db, product_id)
        if not product.is_active:
            raise ProductNotFoundError(product_id)
        return product

    @staticmethod
    def get_product_by_slug(db: Session, slug: str) -> Product:
        product = db.query(Product).filter(Product.slug == slug, Product.is_active.is_(True)).first()
        if not product:
            raise ProductNotFoundError(slug)
        return product

    # --- Product management ---

    @staticmethod
    def _replace_images(product: Product, urls: List[str]) -> None:
        product.images.clear()
        for index, url in enumerate(urls):
            product.images.append(ProductImage(url=str(url), position=index, alt=product.name))

    @staticmethod
    def _require_category(db: Session, category_id: UUID) -> None:
        if not db.query(Category.id).filter(Category.id == category_id).first():
            raise CategoryNotFoundError(category_id)

    @staticmethod
    def create_product(db: Session, data: ProductCreate) -> Product:
        CatalogService._require_category(db, data.category_id)

        slug = _unique_value(db, Product.slug, generate_slug(data.name) or "product")
        sku = _unique_value(db, Product.sku, data.sku or generate_sku(data.name))

        product = Product(
            **data.model_dump(exclude={"images", "sku"}),
            slug=slug,
            sku=sku
        )
        if data.images:
            CatalogService._replace_images(product, data.images)

        db.add(product)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Product create conflict: {e}")
            raise DuplicateResourceError("product", "slug or sku", data.name)
        db.refresh(product)
        invalidate_catalog_cache()
        logger.info(f"Product created: {product.name} ({product.id})")
        return product

    @staticmethod
    def update_product(db: Session, product_id: UUID, data: ProductUpdate) -> Product:
        """Apply a partial update; images are replaced in the same transaction."""
        product = CatalogService.get_product(db, product_id)
        changes = data.model_dump(exclude_unset=True, exclude={"images"})

        if changes.get("category_id"):
            CatalogService._require_category(db, changes["category_id"])
        if changes.get("sku"):
            if db.query(Product.id).filter(Product.sku == changes["sku"], Product.id != product.id).first():
                raise DuplicateResourceError("product", "sku", changes["sku"])
        if changes.get("name") and changes["name"] != product.name:
            product.slug = _unique_value(db, Product.slug, generate_slug(changes["name"]) or "product", exclude_id=product.id)

        for field, value in changes.items():
            setattr(product, field, value)
        if data.images is not None:
            CatalogService._replace_images(product, data.images)

        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Product update conflict: {e}")
            raise DuplicateResourceError("product", "slug or sku", product_id)
        db.refresh(product)
        invalidate_catalog_cache()
        return product

    @staticmethod
    def delete_product(db: Session, product_id: UUID) -> None:
        product = CatalogService.get_product(db, product_id)
        db.query(Favorite).filter(Favorite.product_id == product.id).delete()
        db.delete(product)
        db.commit()
        invalidate_catalog_cache()
        logger.info(f"Product deleted: {product_id}")

    # --- Category management ---

    @staticmethod
    def list_categories_with_counts(db: Session) -> List[AdminCategoryResponse]:
        rows = db.query(Category, func.count(Product.id)).outerjoin(
            Product, Product.category_id == Category.id
        ).group_by(Category.id).order_by(Category.name.asc()).all()
        return [
            AdminCategoryResponse(
                **CategoryResponse.model_validate(category).model_dump(),
                products_count=count,
                created_at=category.created_at
            )
            for category, count in rows
        ]

    @staticmethod
    def get_category(db: Session, category_id: UUID) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise CategoryNotFoundError(category_id)
        return category

    @staticmethod
    def create_category(db: Session, data: CategoryCreate) -> Category:
        slug = generate_slug(data.slug) or data.slug
        if db.query(Category.id).filter(Category.slug == slug).first():
            raise DuplicateResourceError("category", "slug", slug)

        category = Category(**data.model_dump(exclude={"slug"}), slug=slug)
        db.add(category)
        db.commit()
        db.refresh(category)
        invalidate_catalog_cache()
        return category

    @staticmethod
    def update_category(db: Session, category_id: UUID, data: CategoryUpdate) -> Category:
        category = CatalogService.get_category(db, category_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("slug"):
            changes["slug"] = generate_slug(changes["slug"]) or changes["slug"]
            if db.query(Category.id).filter(Category.slug == changes["slug"], Category.id != category.id).first():
                raise DuplicateResourceError("category", "slug", changes["slug"])
        for field, value in changes.items():
            setattr(category, field, value)
        db.commit()
        db.refresh(category)
        invalidate_catalog_cache()
        return category

    @staticmethod
    def delete_category(db: Session, category_id: UUID) -> None:
        category = CatalogService.get_category(db, category_id)
        count = db.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
        if count:
            raise ResourceInUseError("category", f"Category still has {count} product(s)")
        db.delete(category)
        db.commit()
        invalidate_catalog_cache()
