"""Composition root: builds every storefront service once and wires them together."""

from __future__ import annotations

from typing import List, Optional

from .config import AppConfig, load_env
from .models.cart_item import CartItem
from .models.catalog import Product
from .services import (
    ApiClient,
    BuyNowCoupons,
    CartStore,
    CatalogService,
    Checkout,
    CouponService,
    KeyValueStore,
    OrderService,
    ProductView,
    SqlKeyValueStore,
    ViewScope,
)
from .services.logging import configure, log_event
from .services.storage import normalize_shopper_key


class AppState:
    """Shared application state, passed explicitly to every consumer."""

    def __init__(self, config: AppConfig, storage: KeyValueStore, api: ApiClient, *, clock=None, schedule=None) -> None:
        self.config = config
        self.storage = storage
        self.api = api
        self.email: Optional[str] = None

        buy_now_options = {"ttl_seconds": config.buy_now_coupon_ttl_seconds}
        if clock is not None:
            buy_now_options["clock"] = clock
        if schedule is not None:
            buy_now_options["schedule"] = schedule

        self.cart = CartStore(storage)
        self.coupons = CouponService(api, self.cart)
        self.buy_now = BuyNowCoupons(api, storage, **buy_now_options)
        self.catalog = CatalogService(api, cache_ttl_seconds=config.catalog_cache_ttl_seconds)
        self.orders = OrderService(api)
        self.product_view = ProductView()

    @property
    def shopper_key(self) -> str:
        return normalize_shopper_key(self.email)

    def set_shopper(self, email: Optional[str]) -> None:
        """Switch identity; cart, cart coupon and buy-now session follow the new shopper."""
        self.email = (email or "").strip() or None
        self.cart.switch_shopper(self.email)
        product = self.product_view.product
        self.buy_now.bind(self.shopper_key, product.id if product else None)

    def open_product(self, product_id: str) -> ProductView:
        return self.show_product(self.catalog.get_product(product_id))

    def load_product(self, scope: ViewScope, product_id: str, on_error=None):
        """Fetch in the background; runs on the worker thread, dropped if ``scope`` is closed first."""
        return scope.submit(lambda: self.catalog.get_product(product_id), self.show_product, on_error)

    def show_product(self, product: Optional[Product]) -> ProductView:
        self.product_view.set_product(product)
        self.buy_now.bind(self.shopper_key, product.id if product else None)
        return self.product_view

    def related_products(self, limit: int = 4) -> List[Product]:
        product = self.product_view.product
        return self.catalog.related_products(product, limit) if product else []

    def add_to_cart(self, quantity: int = 1) -> Optional[CartItem]:
        item = self.product_view.line_item(quantity)
        if item is None:
            return None
        self.cart.add_item(item)
        return item

    def cart_checkout(self) -> Checkout:
        return Checkout(
            self.cart,
            self.orders,
            shopper_email=self.email,
            bypass_payment=self.config.bypass_payment_checkout,
            free_shipping_threshold=self.config.free_shipping_threshold,
            shipping_rate=self.config.shipping_rate,
        )

    def buy_now_checkout(self, quantity: int = 1) -> Optional[Checkout]:
        item = self.product_view.line_item(quantity)
        if item is None:
            return None
        return Checkout(
            self.cart,
            self.orders,
            buy_now_item=item,
            buy_now_coupon=self.buy_now.for_checkout(),
            shopper_email=self.email,
            bypass_payment=self.config.bypass_payment_checkout,
            free_shipping_threshold=self.config.free_shipping_threshold,
            shipping_rate=self.config.shipping_rate,
        )

    def close(self) -> None:
        self.buy_now.close()


def create_app(
    config: Optional[AppConfig] = None,
    *,
    storage: Optional[KeyValueStore] = None,
    api: Optional[ApiClient] = None,
    **kwargs,
) -> AppState:
    config = config or load_env()
    configure(config.log_level)
    storage = storage or SqlKeyValueStore(database_url=config.database_url)
    api = api or ApiClient(config.api_base_url, timeout=config.request_timeout)
    state = AppState(config, storage, api, **kwargs)
    log_event("info", "app.started", api_base_url=config.api_base_url, shopper=state.shopper_key)
    return state
