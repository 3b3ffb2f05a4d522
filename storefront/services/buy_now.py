"""
Buy-now coupon sessions.

A buy-now coupon is evaluated for a single line item and lives for a fixed TTL,
scoped to one (shopper, product) pair and independent of the cart coupon.
Expiry is enforced three ways:
- on read, an expired session is dropped and its storage entry deleted
- a timer clears the session at expiry even when nothing reads it
- rebinding to another shopper or product discards the in-memory session
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ..models.cart_item import BuyNowCouponSession, CartItem
from .api_client import ApiClient
from .coupon_service import CouponError, evaluate_coupon, normalize_code
from .logging import log_event
from .observable import Observable
from .storage import GUEST_KEY, KeyValueStore, buy_now_coupon_key
from .view_scope import start_timer

BUY_NOW_COUPON_TTL_SECONDS = 5 * 60
EXPIRED_NOTICE = "Coupon session expired. You can apply it again."
APPLIED_NOTICE = "Coupon applied for this Buy Now checkout."


class BuyNowCoupons(Observable):
    def __init__(
        self,
        api: ApiClient,
        storage: KeyValueStore,
        *,
        ttl_seconds: float = BUY_NOW_COUPON_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        schedule=start_timer,
    ) -> None:
        super().__init__()
        self._api = api
        self._storage = storage
        self._ttl = ttl_seconds
        self._clock = clock
        self._schedule = schedule
        self._lock = threading.RLock()
        self._shopper_key = GUEST_KEY
        self._product_id: Optional[str] = None
        self._session: Optional[BuyNowCouponSession] = None
        self._timer = None
        self.notice: Optional[str] = None

    @property
    def storage_key(self) -> Optional[str]:
        return buy_now_coupon_key(self._shopper_key, self._product_id)

    @property
    def scope(self):
        return self._shopper_key, self._product_id

    @property
    def session(self) -> Optional[BuyNowCouponSession]:
        """The live session, or ``None`` once it has expired."""
        expired = False
        with self._lock:
            if self._session is not None and self._session.is_expired(self._clock()):
                self._drop(EXPIRED_NOTICE)
                expired = True
            session = self._session
        if expired:
            self._notify()
        return session

    @property
    def remaining_seconds(self) -> float:
        session = self.session
        if session is None:
            return 0.0
        return max(0.0, session.expires_at - self._clock())

    def bind(self, shopper_key: str, product_id: Optional[str]) -> None:
        """Point at another (shopper, product) scope, restoring its persisted session."""
        with self._lock:
            if (shopper_key, product_id) == self.scope:
                return
            self._cancel_timer()
            self._session = None
            self.notice = None
            self._shopper_key, self._product_id = shopper_key, product_id

            key = self.storage_key
            persisted = BuyNowCouponSession.from_dict(self._storage.get_json(key)) if key else None
            if persisted is not None:
                if persisted.is_expired(self._clock()):
                    self._storage.delete(key)
                    self.notice = EXPIRED_NOTICE
                else:
                    self._session = persisted
                    self._arm_timer(persisted)
        self._notify()

    def apply(self, raw_code: str, item: Optional[CartItem]) -> BuyNowCouponSession:
        code = normalize_code(raw_code)
        if not code:
            raise CouponError("Please enter a coupon code.")
        if item is None:
            raise CouponError("Product is not ready for coupon check.")
        # a rejected code leaves the current scope and its session untouched
        result = evaluate_coupon(self._api, code, [item])
        self.bind(self._shopper_key, item.resolved_product_id)

        with self._lock:
            session = BuyNowCouponSession(
                code=code,
                discount=result["discount"],
                expires_at=self._clock() + self._ttl,
            )
            self._cancel_timer()
            self._session = session
            self.notice = APPLIED_NOTICE
            key = self.storage_key
            if key:
                self._storage.set_json(key, session.to_dict())
            self._arm_timer(session)
        log_event(
            "info",
            "buy_now.coupon_applied",
            shopper=self._shopper_key,
            product_id=self._product_id,
            code=code,
            discount=session.discount,
            expires_at=session.expires_at,
        )
        self._notify()
        return session

    def clear(self, notice: Optional[str] = None) -> None:
        with self._lock:
            self._drop(notice)
        self._notify()

    def for_checkout(self) -> Optional[BuyNowCouponSession]:
        return self.session

    def close(self) -> None:
        """Stop the expiry timer; the persisted session is kept."""
        with self._lock:
            self._cancel_timer()

    def _drop(self, notice: Optional[str]) -> None:
        if notice == EXPIRED_NOTICE and self._session is not None:
            log_event("info", "buy_now.expired", shopper=self._shopper_key, product_id=self._product_id)
        self._cancel_timer()
        self._session = None
        self.notice = notice
        key = self.storage_key
        if key:
            self._storage.delete(key)

    def _arm_timer(self, session: BuyNowCouponSession) -> None:
        delay = session.expires_at - self._clock()

        def _expire() -> None:
            with self._lock:
                if self._session is not session:
                    return
                self._drop(EXPIRED_NOTICE)
            self._notify()

        self._timer = self._schedule(delay, _expire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
