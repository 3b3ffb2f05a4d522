from .base import Base
from .cart_item import AppliedCoupon, BuyNowCouponSession, CartItem, make_item_id
from .catalog import Category, Product, ProductImage, Specification, Variant
from .coupon import Coupon
from .storage_entry import StorageEntry

__all__ = [
    "Base",
    "AppliedCoupon",
    "BuyNowCouponSession",
    "CartItem",
    "make_item_id",
    "Category",
    "Product",
    "ProductImage",
    "Specification",
    "Variant",
    "Coupon",
    "StorageEntry",
]
