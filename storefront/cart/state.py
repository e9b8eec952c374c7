# storefront/cart/state.py
"""
Shopping cart reducer.

The cart is a list of line items plus two derived values, ``total`` and
``item_count``. Every action goes through :func:`cart_reducer`, which never
mutates its input and recomputes both derived values from scratch.

Quantities are always kept within ``[1, stock]``: a line whose quantity
would drop to zero is removed instead.
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CartProduct(BaseModel):
    """Product snapshot used when adding to the cart (a line item without quantity)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float = Field(ge=0)
    image: Optional[str] = None
    slug: str
    stock: int


class CartItem(CartProduct):
    quantity: int


class CartLine(BaseModel):
    """Saved form of a line item: the product id and quantity only."""
    id: str
    quantity: int


class CartState(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[CartItem] = Field(default_factory=list)
    total: float = 0.0
    item_count: int = 0


class CartActionType(str, Enum):
    ADD_ITEM = "ADD_ITEM"
    REMOVE_ITEM = "REMOVE_ITEM"
    UPDATE_QUANTITY = "UPDATE_QUANTITY"
    CLEAR_CART = "CLEAR_CART"
    LOAD_CART = "LOAD_CART"


class CartAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: CartActionType
    item: Optional[CartProduct] = None
    id: Optional[str] = None
    quantity: Optional[int] = None
    items: Optional[List[CartItem]] = None


# --- Action constructors ---

def add_item(item: Union[CartProduct, dict]) -> CartAction:
    return CartAction(type=CartActionType.ADD_ITEM, item=item)

def remove_item(item_id: str) -> CartAction:
    return CartAction(type=CartActionType.REMOVE_ITEM, id=item_id)

def update_quantity(item_id: str, quantity: int) -> CartAction:
    return CartAction(type=CartActionType.UPDATE_QUANTITY, id=item_id, quantity=quantity)

def clear_cart() -> CartAction:
    return CartAction(type=CartActionType.CLEAR_CART)

def load_cart(items: List[Union[CartItem, dict]]) -> CartAction:
    return CartAction(type=CartActionType.LOAD_CART, items=items)


# --- Reduction ---

def compute_state(items: List[CartItem]) -> CartState:
    """Build a state from line items, deriving total and item count by full reduction."""
    total = 0.0
    item_count = 0
    for item in items:
        total += item.price * item.quantity
        item_count += item.quantity
    return CartState(items=list(items), total=total, item_count=item_count)


def _clamp(quantity: int, stock: int) -> int:
    return min(quantity, stock)


def _add(state: CartState, product: CartProduct) -> CartState:
    if product.stock < 1:
        return state

    items = []
    found = False
    for item in state.items:
        if item.id == product.id:
            found = True
            # Refresh the snapshot so the ceiling follows current inventory
            item = CartItem(**product.model_dump(exclude={"quantity"}), quantity=_clamp(item.quantity + 1, product.stock))
        items.append(item)

    if not found:
        items.append(CartItem(**product.model_dump(exclude={"quantity"}), quantity=1))
    return compute_state(items)


def _remove(state: CartState, item_id: str) -> CartState:
    return compute_state([item for item in state.items if item.id != item_id])


def _update_quantity(state: CartState, item_id: str, quantity: int) -> CartState:
    if quantity <= 0:
        return _remove(state, item_id)

    items = []
    for item in state.items:
        if item.id == item_id:
            new_quantity = _clamp(quantity, item.stock)
            if new_quantity < 1:
                continue
            item = item.model_copy(update={"quantity": new_quantity})
        items.append(item)
    return compute_state(items)


def _load(items: List[CartItem]) -> CartState:
    loaded = []
    seen = set()
    for item in items:
        if item.id in seen:
            continue
        quantity = _clamp(item.quantity, item.stock)
        if quantity < 1:
            continue
        seen.add(item.id)
        loaded.append(item if quantity == item.quantity else item.model_copy(update={"quantity": quantity}))
    return compute_state(loaded)


def cart_reducer(state: CartState, action: CartAction) -> CartState:
    """Apply ``action`` to ``state`` and return the new state."""
    if action.type == CartActionType.ADD_ITEM:
        return _add(state, action.item)
    if action.type == CartActionType.REMOVE_ITEM:
        return _remove(state, action.id)
    if action.type == CartActionType.UPDATE_QUANTITY:
        return _update_quantity(state, action.id, action.quantity)
    if action.type == CartActionType.CLEAR_CART:
        return CartState()
    if action.type == CartActionType.LOAD_CART:
        return _load(action.items or [])
    return state
