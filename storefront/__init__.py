"""Storefront variant resolution, cart and coupon pricing engine."""

__version__ = "0.1.0"
