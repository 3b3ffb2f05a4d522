from decimal import Decimal

import pytest

from storefront.app import create_app
from storefront.config import AppConfig
from storefront.services.storage import buy_now_coupon_key

from helpers import make_item


@pytest.fixture
def config():
    return AppConfig(
        database_url="sqlite:///:memory:",
        log_level="WARNING",
        api_base_url="http://api.test",
        currency="EUR",
    )


@pytest.fixture
def state(config, storage, api, clock, scheduler, tee_shirt):
    api.get_json.return_value = []
    app = create_app(config, storage=storage, api=api, clock=clock, schedule=scheduler)
    app.show_product(tee_shirt)
    yield app
    app.close()


def test_add_to_cart_uses_resolved_variant(state):
    state.product_view.select("color", "Blue")
    item = state.add_to_cart(2)
    assert item.id == "tee:v-blue-m"
    assert state.cart.total_items == 2
    assert state.cart.subtotal == Decimal("44.0")


def test_shoppers_have_isolated_carts(state):
    state.set_shopper("alice@example.com")
    state.add_to_cart()
    state.set_shopper("bob@example.com")
    assert state.cart.is_empty
    state.set_shopper("Alice@Example.com")
    assert [it.id for it in state.cart.items] == ["tee:v-red-s"]
    assert state.shopper_key == "alice@example.com"


def test_buy_now_checkout_carries_coupon_session(state, api, storage):
    state.set_shopper("alice@example.com")
    api.post_json.return_value = {"coupon_id": 1, "discount": 5.0}
    state.buy_now.apply("flash", state.product_view.line_item())
    checkout = state.buy_now_checkout()
    assert checkout.is_buy_now
    assert checkout.coupon_code == "FLASH"
    assert checkout.totals().grand_total == Decimal("19.99")
    assert storage.get(buy_now_coupon_key("alice@example.com", "tee")) is not None


def test_buy_now_session_does_not_follow_shopper(state, api):
    state.set_shopper("alice@example.com")
    api.post_json.return_value = {"coupon_id": 1, "discount": 5.0}
    state.buy_now.apply("flash", state.product_view.line_item())
    state.set_shopper("bob@example.com")
    assert state.buy_now_checkout().coupon_code is None


def test_expired_buy_now_coupon_is_not_used_at_checkout(state, api, clock):
    api.post_json.return_value = {"coupon_id": 1, "discount": 5.0}
    state.buy_now.apply("flash", state.product_view.line_item())
    clock.advance(6 * 60)
    checkout = state.buy_now_checkout()
    assert checkout.coupon_code is None
    assert state.buy_now.notice == "Coupon session expired. You can apply it again."


def test_cart_checkout_uses_config_shipping(config, storage, api):
    config.shipping_rate = Decimal("2.00")
    app = create_app(config, storage=storage, api=api)
    app.cart.add_item(make_item("a", price=10.0))
    assert app.cart_checkout().totals().grand_total == Decimal("12.00")


def test_open_product_goes_through_catalog(config, storage, api):
    api.get_json.return_value = [{"id": "mug", "name": "Mug", "base_price": 8}]
    app = create_app(config, storage=storage, api=api)
    view = app.open_product("mug")
    assert view.product.id == "mug"
    assert app.buy_now.scope == ("guest", "mug")
    assert app.add_to_cart().id == "mug"


def test_missing_product_yields_no_line_item(config, storage, api):
    api.get_json.return_value = []
    app = create_app(config, storage=storage, api=api)
    app.open_product("nope")
    assert app.add_to_cart() is None
    assert app.buy_now_checkout() is None


def test_related_products_share_the_category(config, storage, api):
    api.get_json.return_value = [
        {"id": "tee", "name": "Tee", "category_slug": "apparel"},
        {"id": "mug", "name": "Mug", "category_slug": "kitchen"},
        {"id": "cap", "name": "Cap", "category_slug": "apparel"},
        {"id": "sock", "name": "Sock", "category_slug": "apparel"},
    ]
    app = create_app(config, storage=storage, api=api)
    assert app.related_products() == []
    app.open_product("tee")
    assert [p.id for p in app.related_products()] == ["cap", "sock"]
    assert [p.id for p in app.related_products(limit=1)] == ["cap"]
