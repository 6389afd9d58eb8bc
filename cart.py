"""
Cart state store

One CartStore per shopper session. Holds line items and gift options,
notifies subscribers after every mutation. All operations are synchronous.
"""

import logging
from decimal import Decimal
from typing import Callable, List, Optional

from schemas import CartItem, CartState, GiftOptions

logger = logging.getLogger(__name__)

Listener = Callable[[CartState], None]


class CartStore:
    def __init__(self, state: Optional[CartState] = None):
        self._state = state.model_copy(deep=True) if state else CartState()
        self._listeners: List[Listener] = []

    # get / set / subscribe

    def get(self) -> CartState:
        return self._state.model_copy(deep=True)

    def set(self, state: CartState) -> None:
        self._state = state.model_copy(deep=True)
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.get()
        for listener in list(self._listeners):
            listener(snapshot)

    # Items

    @property
    def items(self) -> List[CartItem]:
        return [i.model_copy() for i in self._state.items]

    def _find(self, item_id: str) -> Optional[CartItem]:
        return next((i for i in self._state.items if i.id == item_id), None)

    def add_item(self, item: CartItem, quantity: Optional[int] = None) -> None:
        amount = quantity if quantity is not None else item.quantity
        if amount < 1:
            raise ValueError("Quantity to add must be at least 1")
        existing = self._find(item.id)
        if existing is not None:
            existing.quantity += amount
        else:
            self._state.items.append(item.model_copy(update={"quantity": amount}))
        self._notify()

    def update_quantity(self, item_id: str, quantity: int) -> None:
        existing = self._find(item_id)
        if existing is None:
            return
        if quantity <= 0:
            self.remove_item(item_id)
            return
        existing.quantity = quantity
        self._notify()

    def remove_item(self, item_id: str) -> None:
        before = len(self._state.items)
        self._state.items = [i for i in self._state.items if i.id != item_id]
        if len(self._state.items) != before:
            self._notify()

    def clear_cart(self) -> None:
        self._state = CartState()
        logger.debug("Cart cleared")
        self._notify()

    def get_total_items(self) -> int:
        return sum(i.quantity for i in self._state.items)

    def get_total_price(self) -> Decimal:
        return sum((Decimal(i.price) * i.quantity for i in self._state.items), Decimal("0"))

    # Gift options

    @property
    def gift_options(self) -> GiftOptions:
        return self._state.gift_options.model_copy()

    def set_gift_options(self, options: GiftOptions) -> None:
        self._state.gift_options = options.model_copy()
        self._notify()
