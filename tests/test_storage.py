import pytest

from storefront.services.storage import (
    MemoryKeyValueStore,
    SqlKeyValueStore,
    buy_now_coupon_key,
    cart_key,
    coupon_key,
    normalize_shopper_key,
)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemoryKeyValueStore()
    return request.getfixturevalue("sql_storage")


def test_set_get_delete(store):
    assert store.get("k") is None
    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"
    store.delete("k")
    assert store.get("k") is None
    store.delete("k")


def test_json_helpers(store):
    store.set_json("k", {"name": "Café", "items": [1, 2]})
    assert store.get_json("k") == {"name": "Café", "items": [1, 2]}
    assert "Café" in store.get("k")


def test_unparsable_json_reads_as_none(store):
    store.set("k", "{broken")
    assert store.get_json("k") is None
    assert store.get_json("missing") is None


def test_sql_store_needs_a_source():
    with pytest.raises(ValueError):
        SqlKeyValueStore()


def test_sql_store_from_database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'nested' / 'store.db'}"
    SqlKeyValueStore(database_url=url).set("k", "v")
    assert SqlKeyValueStore(database_url=url).get("k") == "v"


@pytest.mark.parametrize(
    "email,expected",
    [(None, "guest"), ("", "guest"), ("   ", "guest"), (" Ana@Example.COM ", "ana@example.com")],
)
def test_normalize_shopper_key(email, expected):
    assert normalize_shopper_key(email) == expected


def test_keys_are_namespaced():
    assert cart_key("guest") == "cart:items:v1:guest"
    assert coupon_key("a@b.c") == "cart:coupon:v1:a@b.c"
    assert buy_now_coupon_key("a@b.c", "tee") == "product:buy-now-coupon:v1:a@b.c:tee"
    assert buy_now_coupon_key("a@b.c", None) is None
