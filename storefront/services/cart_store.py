from __future__ import annotations

import logging
import math
from dataclasses import replace
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from ..models.cart_item import AppliedCoupon, CartItem
from .logging import log_event
from .observable import Observable
from .pricing import PriceBreakdown, calculate_totals, clamp_discount, to_decimal
from .storage import (
    GUEST_KEY,
    LEGACY_CART_KEY,
    KeyValueStore,
    cart_key,
    coupon_key,
    normalize_shopper_key,
)

logger = logging.getLogger(__name__)


def parse_cart_payload(payload: Any) -> List[CartItem]:
    """Valid items from a stored cart; accepts a bare list or ``{"items": [...]}``."""
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict) and isinstance(payload.get("items"), list):
        records = payload["items"]
    else:
        return []
    items = []
    for record in records:
        item = CartItem.from_dict(record)
        if item is None:
            logger.warning("Dropping invalid cart record: %r", record)
            continue
        items.append(item)
    return items


class CartStore(Observable):
    """Cart items and the cart-wide coupon for the current shopper.

    Every mutation commits in memory, then (with ``autosave``) calls ``persist``,
    then notifies listeners.
    """

    def __init__(self, storage: KeyValueStore, shopper_key: str = GUEST_KEY, *, autosave: bool = True) -> None:
        super().__init__()
        self._storage = storage
        self._shopper_key = normalize_shopper_key(shopper_key)
        self._autosave = autosave
        self._items: List[CartItem] = []
        self._coupon: Optional[AppliedCoupon] = None
        self.load()

    # ── Identity & persistence ───────────────────────────────────────────────

    @property
    def shopper_key(self) -> str:
        return self._shopper_key

    @property
    def storage_key(self) -> str:
        return cart_key(self._shopper_key)

    def switch_shopper(self, email: Optional[str]) -> bool:
        """Swap to another shopper's partition. Returns ``False`` when unchanged."""
        shopper_key = normalize_shopper_key(email)
        if shopper_key == self._shopper_key:
            return False
        items, coupon = self._read_partition(shopper_key)
        self._shopper_key, self._items, self._coupon = shopper_key, items, coupon
        log_event("info", "cart.shopper_switched", shopper=shopper_key, items=len(items))
        self._notify()
        return True

    def load(self) -> None:
        self._items, self._coupon = self._read_partition(self._shopper_key)
        self._notify()

    def persist(self) -> None:
        items_key = cart_key(self._shopper_key)
        if self._items:
            self._storage.set_json(items_key, {"items": [it.to_dict() for it in self._items]})
        else:
            self._storage.delete(items_key)

        discount_key = coupon_key(self._shopper_key)
        if self._coupon is not None:
            self._storage.set_json(discount_key, self._coupon.to_dict())
        else:
            self._storage.delete(discount_key)

    def _read_partition(self, shopper_key: str) -> Tuple[List[CartItem], Optional[AppliedCoupon]]:
        self._migrate_legacy(shopper_key)
        items = parse_cart_payload(self._storage.get_json(cart_key(shopper_key)))
        coupon = AppliedCoupon.from_dict(self._storage.get_json(coupon_key(shopper_key)))
        return items, coupon

    def _migrate_legacy(self, shopper_key: str) -> None:
        legacy = self._storage.get(LEGACY_CART_KEY)
        target = cart_key(shopper_key)
        if legacy and not self._storage.get(target):
            self._storage.set(target, legacy)
            self._storage.delete(LEGACY_CART_KEY)
            log_event("info", "cart.legacy_migrated", shopper=shopper_key)

    def _commit(self) -> None:
        if self._autosave:
            self.persist()
        self._notify()

    # ── Mutations ────────────────────────────────────────────────────────────

    def add_item(self, item: CartItem) -> None:
        """Add ``item``; an existing line with the same id gets its quantity summed."""
        if int(item.quantity) < 1:
            raise ValueError("quantity must be > 0")
        for index, existing in enumerate(self._items):
            if existing.id == item.id:
                self._items[index] = replace(existing, quantity=existing.quantity + int(item.quantity))
                break
        else:
            self._items.append(replace(item, quantity=int(item.quantity)))
        log_event("info", "cart.item_added", shopper=self._shopper_key, item_id=item.id, quantity=int(item.quantity))
        self._commit()

    def remove_item(self, item_id: str) -> None:
        remaining = [it for it in self._items if it.id != item_id]
        if len(remaining) == len(self._items):
            return
        self._items = remaining
        log_event("info", "cart.item_removed", shopper=self._shopper_key, item_id=item_id)
        self._commit()

    def update_quantity(self, item_id: str, quantity: float) -> None:
        """Set a line's quantity; anything that floors to zero or below removes it."""
        if quantity is None or isinstance(quantity, bool) or not math.isfinite(float(quantity)):
            raise ValueError("quantity must be a finite number")
        qnty = math.floor(float(quantity))
        if qnty <= 0:
            self.remove_item(item_id)
            return
        for index, existing in enumerate(self._items):
            if existing.id == item_id:
                if existing.quantity == qnty:
                    return
                self._items[index] = replace(existing, quantity=qnty)
                self._commit()
                return

    def clear_cart(self) -> None:
        self._items = []
        self._coupon = None
        log_event("info", "cart.cleared", shopper=self._shopper_key)
        self._commit()

    def set_coupon(self, coupon: Optional[AppliedCoupon]) -> None:
        self._coupon = coupon
        self._commit()

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def applied_coupon(self) -> Optional[AppliedCoupon]:
        return self._coupon

    @property
    def coupon_code(self) -> Optional[str]:
        return self._coupon.code if self._coupon else None

    @property
    def total_items(self) -> int:
        return sum(it.quantity for it in self._items)

    @property
    def subtotal(self) -> Decimal:
        return sum((to_decimal(it.price) * it.quantity for it in self._items), Decimal("0"))

    @property
    def coupon_discount(self) -> Decimal:
        """Applied discount clamped to the live subtotal."""
        if self._coupon is None:
            return Decimal("0")
        return clamp_discount(self._coupon.discount, self.subtotal)

    @property
    def subtotal_after_discount(self) -> Decimal:
        return self.subtotal - self.coupon_discount

    def totals(self, **kwargs) -> PriceBreakdown:
        applied = self._coupon.discount if self._coupon else 0
        return calculate_totals(self._items, applied, **kwargs)
