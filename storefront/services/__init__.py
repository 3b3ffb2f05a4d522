"""Storefront services entry point."""

from .api_client import ApiClient, ApiError
from .buy_now import BuyNowCoupons
from .cart_store import CartStore
from .catalog_service import CatalogService
from .checkout import Checkout, CheckoutStep, CheckoutValidationError
from .coupon_service import CouponError, CouponService
from .order_service import OrderService
from .product_view import ProductView
from .storage import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore
from .view_scope import ViewScope

__all__ = [
    "ApiClient",
    "ApiError",
    "BuyNowCoupons",
    "CartStore",
    "CatalogService",
    "Checkout",
    "CheckoutStep",
    "CheckoutValidationError",
    "CouponError",
    "CouponService",
    "OrderService",
    "ProductView",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "ViewScope",
]
