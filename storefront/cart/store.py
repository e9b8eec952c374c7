# storefront/cart/store.py

import logging
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from pydantic import TypeAdapter, ValidationError

from .state import (
    CartAction, CartItem, CartLine, CartProduct, CartState, cart_reducer,
    add_item, clear_cart, load_cart, remove_item, update_quantity,
)

logger = logging.getLogger(__name__)

CART_KEY = "cart"
CART_USER_KEY = "cartUserId"

SAVED_LINES = TypeAdapter(List[CartLine])

# Maps product ids to current catalog snapshots; unknown ids are left out
ProductLookup = Callable[[List[str]], Dict[str, CartProduct]]


class CartStorage:
    """
    Key/value persistence for a single cart.

    Wraps any mutable mapping: the signed cookie session of a request, or a
    plain dict for scripts and tests.
    """

    def __init__(self, data: Optional[MutableMapping[str, Any]] = None):
        self.data = {} if data is None else data

    def load_items(self) -> Any:
        return self.data.get(CART_KEY)

    def save_items(self, items: list) -> None:
        self.data[CART_KEY] = items

    def clear_items(self) -> None:
        self.data.pop(CART_KEY, None)

    def get_user_id(self) -> Optional[str]:
        return self.data.get(CART_USER_KEY)

    def set_user_id(self, user_id: Optional[str]) -> None:
        if user_id:
            self.data[CART_USER_KEY] = user_id
        else:
            self.data.pop(CART_USER_KEY, None)


class SessionCartStorage(CartStorage):
    """Cart persisted in the client-held session cookie of a request."""

    def __init__(self, request):
        super().__init__(request.session)


class CartStore:
    """
    Holds a cart state, persisting it after every dispatched action.

    Only ``{id, quantity}`` pairs are saved, which keeps a cookie-held cart
    small. Names, prices, images and stock ceilings are looked up again on
    :meth:`hydrate`, so a restored cart always reflects the current catalog.
    """

    def __init__(self, storage: CartStorage, lookup: ProductLookup):
        self.storage = storage
        self.lookup = lookup
        self.state = CartState()
        self.hydrated = False

    def hydrate(self) -> CartState:
        """Restore the cart from storage. Unreadable payloads are discarded."""
        saved = self.storage.load_items()
        try:
            if saved is not None:
                lines = SAVED_LINES.validate_python(saved)
                products = self.lookup([line.id for line in lines]) if lines else {}
                items = [
                    CartItem(**products[line.id].model_dump(), quantity=line.quantity)
                    for line in lines
                    if line.id in products
                ]
                if len(items) < len(lines):
                    logger.info(f"Dropped {len(lines) - len(items)} unavailable product(s) from a saved cart")
                self.state = cart_reducer(CartState(), load_cart(items))
        except ValidationError as e:
            logger.warning(f"Discarding unreadable saved cart: {e}")
            self.storage.clear_items()
            self.storage.set_user_id(None)
            self.state = CartState()
        self.hydrated = True
        return self.state

    def dispatch(self, action: CartAction) -> CartState:
        self.state = cart_reducer(self.state, action)
        self._persist()
        return self.state

    def _persist(self) -> None:
        self.storage.save_items([
            CartLine(id=item.id, quantity=item.quantity).model_dump() for item in self.state.items
        ])

    def sync_user(self, user_id: Optional[str]) -> bool:
        """
        Record the authenticated identity, clearing the cart when it differs
        from the identity that owned it (another account or a logout).

        Returns True when the cart was cleared.
        """
        current = str(user_id) if user_id else None
        last = self.storage.get_user_id()
        cleared = False

        if last and last != current:
            logger.info("Authenticated user changed; clearing cart")
            self.state = cart_reducer(self.state, clear_cart())
            self.storage.clear_items()
            cleared = True

        self.storage.set_user_id(current)
        return cleared

    # --- Convenience wrappers ---

    def add(self, product: CartProduct) -> CartState:
        return self.dispatch(add_item(product))

    def remove(self, item_id: str) -> CartState:
        return self.dispatch(remove_item(item_id))

    def set_quantity(self, item_id: str, quantity: int) -> CartState:
        return self.dispatch(update_quantity(item_id, quantity))

    def clear(self) -> CartState:
        return self.dispatch(clear_cart())

    def load(self, items: list) -> CartState:
        return self.dispatch(load_cart(items))
