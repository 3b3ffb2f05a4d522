import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
import json
from typing import Optional


@dataclass
class AppConfig:
    database_url: str
    log_level: str
    api_base_url: str
    currency: str
    request_timeout: float = 10.0
    buy_now_coupon_ttl_seconds: int = 300
    free_shipping_threshold: Decimal = Decimal("50.00")
    shipping_rate: Decimal = Decimal("4.99")
    catalog_cache_ttl_seconds: int = 60
    bypass_payment_checkout: bool = True


def validate_currency(value: Optional[str]) -> str:
    v = (value or "EUR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_money(value, field: str, default: str) -> Decimal:
    raw = default if value is None or str(value).strip() == "" else str(value).strip()
    try:
        amount = Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"{field} must be a decimal amount") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"{field} must be >= 0")
    return amount


def parse_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _load_settings_file(path: Optional[Path] = None) -> dict:
    path = path or Path(__file__).resolve().parents[1] / "data" / "settings.json"
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return payload if isinstance(payload, dict) else {}


def load_env(settings_path: Optional[Path] = None) -> AppConfig:
    # data/settings.json first, environment as fallback
    s = _load_settings_file(settings_path)

    def pick(key: str, default=None):
        value = s.get(key)
        if value is None or value == "":
            value = os.getenv(key)
        return default if value is None or value == "" else value

    return AppConfig(
        database_url=pick("DATABASE_URL", "sqlite:///data/storefront.db"),
        log_level=str(pick("LOG_LEVEL", "INFO")).upper(),
        api_base_url=str(pick("API_BASE_URL", "http://localhost:5000")).rstrip("/"),
        currency=validate_currency(pick("CURRENCY")),
        request_timeout=float(pick("REQUEST_TIMEOUT", 10)),
        buy_now_coupon_ttl_seconds=int(pick("BUY_NOW_COUPON_TTL_SECONDS", 300)),
        free_shipping_threshold=validate_money(pick("FREE_SHIPPING_THRESHOLD"), "FREE_SHIPPING_THRESHOLD", "50.00"),
        shipping_rate=validate_money(pick("SHIPPING_RATE"), "SHIPPING_RATE", "4.99"),
        catalog_cache_ttl_seconds=int(pick("CATALOG_CACHE_TTL_SECONDS", 60)),
        bypass_payment_checkout=parse_bool(pick("BYPASS_PAYMENT_CHECKOUT"), True),
    )

