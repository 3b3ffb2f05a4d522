from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from ..models.cart_item import AppliedCoupon, CartItem, to_finite
from ..models.coupon import Coupon
from .api_client import ApiClient, ApiError
from .cart_store import CartStore
from .logging import log_event

APPLY_PATH = "/api/discounts/apply"
COUPONS_PATH = "/api/discounts/coupons"


class CouponError(ValueError):
    """Coupon request rejected locally, before any remote call."""


def normalize_code(raw_code: Optional[str]) -> str:
    return (raw_code or "").strip().upper()


def line_breakdown(items: Iterable[CartItem]) -> List[dict]:
    return [
        {
            "product_id": it.resolved_product_id,
            "category_id": it.category_id or None,
            "quantity": it.quantity,
            "unit_price": it.price,
            "line_total": it.quantity * it.price,
        }
        for it in items
    ]


def evaluate_coupon(api: ApiClient, code: str, items: List[CartItem]) -> dict:
    """Ask the discount service what ``code`` is worth for ``items``.

    Returns ``{"coupon_id": int, "discount": float}``; raises ApiError on failure.
    """
    result = api.post_json(APPLY_PATH, {"code": code, "items": line_breakdown(items)})
    if not isinstance(result, dict):
        raise ApiError("Malformed discount response", method="POST", path=APPLY_PATH)
    coupon_id = to_finite(result.get("coupon_id"))
    if coupon_id is None:
        raise ApiError("Malformed discount response", method="POST", path=APPLY_PATH)
    discount = to_finite(result.get("discount")) or 0.0
    return {"coupon_id": int(coupon_id), "discount": max(0.0, discount)}


class CouponService:
    """Cart-wide coupon: remote evaluation, cached result on the cart."""

    def __init__(self, api: ApiClient, cart: CartStore, *, now: Optional[Callable[[], datetime]] = None) -> None:
        self._api = api
        self._cart = cart
        self._now = now or (lambda: datetime.now(timezone.utc))

    def apply_coupon(self, raw_code: str) -> AppliedCoupon:
        code = normalize_code(raw_code)
        if not code:
            raise CouponError("Enter a coupon code")
        items = self._cart.items
        if not items:
            raise CouponError("Cart is empty")

        try:
            result = evaluate_coupon(self._api, code, items)
        except ApiError as exc:
            log_event("warning", "coupon.apply_failed", shopper=self._cart.shopper_key, code=code, error=str(exc))
            raise

        applied = AppliedCoupon(id=result["coupon_id"], code=code, discount=result["discount"])
        self._cart.set_coupon(applied)
        log_event("info", "coupon.applied", shopper=self._cart.shopper_key, code=code, discount=applied.discount)
        return applied

    def remove_coupon(self) -> None:
        self._cart.set_coupon(None)

    def list_available_coupons(self) -> List[Coupon]:
        rows = self._api.get_json(COUPONS_PATH)
        if not isinstance(rows, list):
            return []
        now = self._now()
        coupons = (Coupon.from_dict(row) for row in rows)
        return [c for c in coupons if c is not None and c.is_available(now)]
