# storefront/cart/controller.py
from typing import Annotated, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth.service import OptionalUser
from ..catalog.service import CatalogService
from ..core.exceptions import HANDLED_ERRORS, OutOfStockError
from ..database.core import DbSession
from ..database.models import Product
from ..logging import logger
from .state import CartItem, CartProduct, CartState
from .store import CartStore, ProductLookup, SessionCartStorage

router = APIRouter(prefix="/cart", tags=["cart"])


class AddToCartRequest(BaseModel):
    product_id: UUID


class UpdateQuantityRequest(BaseModel):
    quantity: int


class LoadCartRequest(BaseModel):
    items: List[CartItem] = Field(default_factory=list)


def snapshot(product: Product) -> CartProduct:
    return CartProduct(
        id=str(product.id),
        name=product.name,
        price=product.price,
        image=product.first_image,
        slug=product.slug,
        stock=product.stock
    )


def catalog_lookup(db: Session) -> ProductLookup:
    """Snapshots of the active products among the given ids. Malformed ids are skipped."""
    def lookup(product_ids: List[str]) -> Dict[str, CartProduct]:
        requested = {}
        for product_id in product_ids:
            try:
                requested[product_id] = UUID(str(product_id))
            except ValueError:
                continue
        if not requested:
            return {}
        products = {
            p.id: p
            for p in db.query(Product).filter(
                Product.id.in_(list(set(requested.values()))), Product.is_active.is_(True)
            ).all()
        }
        return {raw: snapshot(products[uid]) for raw, uid in requested.items() if uid in products}

    return lookup


def get_cart_store(request: Request, current_user: OptionalUser, db: DbSession) -> CartStore:
    """Cart for this client, cleared if the signed-in identity changed since it was saved."""
    store = CartStore(SessionCartStorage(request), catalog_lookup(db))
    store.hydrate()
    store.sync_user(current_user.user_id if current_user else None)
    return store


Cart = Annotated[CartStore, Depends(get_cart_store)]


@router.get("", response_model=CartState)
async def get_cart(cart: Cart):
    return cart.state


@router.post("/items", response_model=CartState)
async def add_to_cart(add_request: AddToCartRequest, cart: Cart, db: DbSession):
    """Add one unit of a product, up to its available stock."""
    try:
        product = CatalogService.get_active_product(db, add_request.product_id)
        item = snapshot(product)
        if item.stock < 1:
            raise OutOfStockError(product.name, available=item.stock)
        return cart.add(item)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Failed to add product {add_request.product_id} to cart: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to add to cart: {str(e)}"
        )


@router.patch("/items/{product_id}", response_model=CartState)
async def update_cart_item(product_id: UUID, update_request: UpdateQuantityRequest, cart: Cart):
    """Set a line's quantity. Zero or less removes the line."""
    return cart.set_quantity(str(product_id), update_request.quantity)


@router.delete("/items/{product_id}", response_model=CartState)
async def remove_cart_item(product_id: UUID, cart: Cart):
    return cart.remove(str(product_id))


@router.delete("", response_model=CartState)
async def clear_cart(cart: Cart):
    return cart.clear()


@router.put("", response_model=CartState)
async def load_cart(load_request: LoadCartRequest, cart: Cart, db: DbSession):
    """Replace the cart with saved lines, refreshed against the current catalog."""
    try:
        products = catalog_lookup(db)([item.id for item in load_request.items])
        items = [
            CartItem(**products[item.id].model_dump(), quantity=item.quantity)
            for item in load_request.items
            if item.id in products
        ]
        dropped = len(load_request.items) - len(items)
        if dropped:
            logger.info(f"Dropped {dropped} unavailable product(s) while loading a cart")
        return cart.load(items)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Failed to load cart: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load cart: {str(e)}"
        )
