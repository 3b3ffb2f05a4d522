from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .cart_item import to_finite

COUPON_TYPES = {"percentage", "fixed"}
RESTRICTION_TYPES = {"global", "product", "category"}


def _parse_expiration(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Coupon:
    """Coupon definition as listed by the discount API (read-only cache)."""

    id: int
    code: str
    type: str
    value: float
    restriction_type: str = "global"
    restriction_id: Optional[str] = None
    expiration: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    is_active: bool = True

    def is_available(self, now: Optional[datetime] = None) -> bool:
        if not self.is_active:
            return False
        now = now or datetime.now(timezone.utc)
        if self.expiration is not None and self.expiration < now:
            return False
        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return False
        return True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["expiration"] = self.expiration.isoformat() if self.expiration else None
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["Coupon"]:
        if not isinstance(raw, dict):
            return None
        coupon_id = to_finite(raw.get("id"))
        code = raw.get("code")
        if coupon_id is None or not isinstance(code, str) or not code.strip():
            return None
        coupon_type = raw.get("type") if raw.get("type") in COUPON_TYPES else "fixed"
        restriction = raw.get("restriction_type") if raw.get("restriction_type") in RESTRICTION_TYPES else "global"
        usage_limit = to_finite(raw.get("usage_limit"))
        return cls(
            id=int(coupon_id),
            code=code.strip().upper(),
            type=coupon_type,
            value=to_finite(raw.get("value")) or 0.0,
            restriction_type=restriction,
            restriction_id=str(raw["restriction_id"]) if raw.get("restriction_id") else None,
            expiration=_parse_expiration(raw.get("expiration")),
            usage_limit=int(usage_limit) if usage_limit is not None else None,
            usage_count=int(to_finite(raw.get("usage_count")) or 0),
            is_active=raw.get("is_active") is not False,
        )
