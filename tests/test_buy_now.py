import pytest

from storefront.models import BuyNowCouponSession
from storefront.services.api_client import ApiError
from storefront.services.buy_now import APPLIED_NOTICE, EXPIRED_NOTICE, BuyNowCoupons
from storefront.services.coupon_service import CouponError
from storefront.services.storage import buy_now_coupon_key

from helpers import make_item

TTL = 300


@pytest.fixture
def coupons(api, storage, clock, scheduler):
    api.post_json.return_value = {"coupon_id": 5, "discount": 4.0}
    service = BuyNowCoupons(api, storage, ttl_seconds=TTL, clock=clock, schedule=scheduler)
    service.bind("alice@example.com", "tee")
    return service


@pytest.fixture
def item():
    return make_item("tee:v1", price=20.0)


def storage_key(product_id="tee", shopper="alice@example.com"):
    return buy_now_coupon_key(shopper, product_id)


class TestApply:
    def test_apply_creates_session_with_ttl(self, coupons, item, clock, storage):
        session = coupons.apply(" promo ", item)
        assert session.code == "PROMO"
        assert session.discount == 4.0
        assert session.expires_at == clock.now + TTL
        assert coupons.notice == APPLIED_NOTICE
        assert storage.get_json(storage_key()) == session.to_dict()

    def test_apply_evaluates_single_line(self, coupons, item, api):
        coupons.apply("PROMO", item)
        path, payload = api.post_json.call_args.args
        assert path == "/api/discounts/apply"
        assert [line["product_id"] for line in payload["items"]] == ["tee"]

    def test_blank_code_and_missing_item_are_rejected_locally(self, coupons, item, api):
        with pytest.raises(CouponError, match="Please enter a coupon code."):
            coupons.apply("", item)
        with pytest.raises(CouponError, match="Product is not ready"):
            coupons.apply("PROMO", None)
        api.post_json.assert_not_called()

    def test_failed_apply_keeps_existing_session(self, coupons, item, api):
        first = coupons.apply("PROMO", item)
        api.post_json.side_effect = ApiError("Invalid coupon", status_code=404)
        with pytest.raises(ApiError):
            coupons.apply("OTHER", item)
        assert coupons.session is first

    def test_failed_apply_for_other_product_keeps_scope(self, coupons, item, api, scheduler, storage):
        first = coupons.apply("PROMO", item)
        api.post_json.side_effect = ApiError("Invalid coupon", status_code=404)
        with pytest.raises(ApiError):
            coupons.apply("OTHER", make_item("mug", price=8.0))
        assert coupons.scope == ("alice@example.com", "tee")
        assert coupons.session is first
        assert len(scheduler.active) == 1
        assert storage.get(storage_key("mug")) is None

    def test_reapply_replaces_timer(self, coupons, item, scheduler, clock):
        coupons.apply("PROMO", item)
        clock.advance(60)
        coupons.apply("PROMO", item)
        assert len(scheduler.active) == 1
        assert scheduler.active[0].delay == TTL

    def test_listeners_are_notified(self, coupons, item):
        calls = []
        coupons.subscribe(calls.append)
        coupons.apply("PROMO", item)
        assert calls == [coupons]


class TestExpiry:
    def test_read_after_ttl_expires_session(self, coupons, item, clock, storage):
        coupons.apply("PROMO", item)
        clock.advance(6 * 60)
        assert coupons.session is None
        assert coupons.notice == EXPIRED_NOTICE
        assert storage.get(storage_key()) is None
        assert coupons.for_checkout() is None

    def test_session_valid_until_exact_expiry(self, coupons, item, clock):
        coupons.apply("PROMO", item)
        clock.advance(TTL - 1)
        assert coupons.session is not None
        assert coupons.remaining_seconds == 1
        clock.advance(1)
        assert coupons.session is None
        assert coupons.remaining_seconds == 0

    def test_timer_clears_without_a_read(self, coupons, item, scheduler, storage):
        coupons.apply("PROMO", item)
        calls = []
        coupons.subscribe(calls.append)
        scheduler.active[0].fire()
        assert coupons.notice == EXPIRED_NOTICE
        assert storage.get(storage_key()) is None
        assert calls == [coupons]
        assert coupons.session is None

    def test_stale_timer_does_not_clear_newer_session(self, coupons, item, scheduler):
        coupons.apply("PROMO", item)
        stale = scheduler.timers[0]
        coupons.apply("PROMO", item)
        stale.callback()
        assert coupons.session is not None

    def test_clear_removes_session(self, coupons, item, storage, scheduler):
        coupons.apply("PROMO", item)
        coupons.clear()
        assert coupons.session is None
        assert coupons.notice is None
        assert storage.get(storage_key()) is None
        assert scheduler.active == []


class TestScoping:
    def test_switching_product_discards_session(self, coupons, item):
        coupons.apply("PROMO", item)
        coupons.bind("alice@example.com", "mug")
        assert coupons.session is None

    def test_switching_shopper_discards_session(self, coupons, item):
        coupons.apply("PROMO", item)
        coupons.bind("bob@example.com", "tee")
        assert coupons.session is None

    def test_switching_back_restores_persisted_session(self, coupons, item, scheduler):
        applied = coupons.apply("PROMO", item)
        coupons.bind("alice@example.com", "mug")
        coupons.bind("alice@example.com", "tee")
        assert coupons.session == applied
        assert len(scheduler.active) == 1

    def test_expired_persisted_session_is_deleted_on_bind(self, api, storage, clock, scheduler):
        storage.set_json(storage_key(), BuyNowCouponSession("promo", 3.0, clock.now - 1).to_dict())
        service = BuyNowCoupons(api, storage, ttl_seconds=TTL, clock=clock, schedule=scheduler)
        service.bind("alice@example.com", "tee")
        assert service.session is None
        assert service.notice == EXPIRED_NOTICE
        assert storage.get(storage_key()) is None

    def test_apply_follows_item_product(self, coupons, storage):
        session = coupons.apply("PROMO", make_item("mug", price=8.0))
        assert coupons.scope == ("alice@example.com", "mug")
        assert storage.get_json(storage_key("mug")) == session.to_dict()

    def test_no_product_means_no_persistence(self, api, storage, clock, scheduler):
        service = BuyNowCoupons(api, storage, ttl_seconds=TTL, clock=clock, schedule=scheduler)
        assert service.storage_key is None
        service.clear()
        assert storage.keys() == []

    def test_close_cancels_timer_but_keeps_storage(self, coupons, item, scheduler, storage):
        coupons.apply("PROMO", item)
        coupons.close()
        assert scheduler.active == []
        assert storage.get(storage_key()) is not None
