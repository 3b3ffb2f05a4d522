"""Cart line items and the coupons attached to a cart or a buy-now checkout."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Optional


def make_item_id(product_id: str, variant_id: Optional[str] = None) -> str:
    return f"{product_id}:{variant_id}" if variant_id else product_id


def to_finite(value: Any) -> Optional[float]:
    """Coerce numbers and numeric strings; ``None`` for anything else."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _non_empty_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _field(raw: dict, name: str, legacy_name: str) -> Any:
    # records written by the previous web client use camelCase keys
    value = raw.get(name)
    return raw.get(legacy_name) if value is None else value


@dataclass
class CartItem:
    id: str
    name: str
    price: float
    image: str
    quantity: int = 1
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    category_id: Optional[str] = None
    original_price: Optional[float] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None

    @property
    def resolved_product_id(self) -> str:
        if self.product_id:
            return self.product_id
        return self.id.split(":", 1)[0]

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["CartItem"]:
        """Parse a stored record, or return ``None`` when it fails validation."""
        if not isinstance(raw, dict):
            return None
        item_id = _non_empty_str(raw.get("id"))
        name = _non_empty_str(raw.get("name"))
        image = _non_empty_str(raw.get("image"))
        if not item_id or not name or not image:
            return None

        price = to_finite(raw.get("price"))
        quantity = to_finite(raw.get("quantity"))
        if price is None or price < 0:
            return None
        if quantity is None or quantity < 1:
            return None

        return cls(
            id=item_id,
            name=name,
            price=price,
            image=image,
            quantity=max(1, math.floor(quantity)),
            product_id=_non_empty_str(_field(raw, "product_id", "productId")),
            variant_id=_non_empty_str(_field(raw, "variant_id", "variantId")),
            category_id=_non_empty_str(_field(raw, "category_id", "categoryId")),
            original_price=to_finite(_field(raw, "original_price", "originalPrice")),
            selected_size=_non_empty_str(_field(raw, "selected_size", "selectedSize")),
            selected_color=_non_empty_str(_field(raw, "selected_color", "selectedColor")),
        )


@dataclass
class AppliedCoupon:
    id: int
    code: str
    discount: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["AppliedCoupon"]:
        if not isinstance(raw, dict):
            return None
        code = _non_empty_str(raw.get("code"))
        coupon_id = to_finite(raw.get("id"))
        discount = to_finite(raw.get("discount"))
        if not code or coupon_id is None or discount is None:
            return None
        return cls(id=int(coupon_id), code=code, discount=max(0.0, discount))


@dataclass
class BuyNowCouponSession:
    code: str
    discount: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["BuyNowCouponSession"]:
        if not isinstance(raw, dict) or not isinstance(raw.get("code"), str):
            return None
        discount = to_finite(raw.get("discount"))
        expires_at = to_finite(raw.get("expires_at"))
        if discount is None or expires_at is None:
            return None
        return cls(code=raw["code"].upper(), discount=max(0.0, discount), expires_at=expires_at)
