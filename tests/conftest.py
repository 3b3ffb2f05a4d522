import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from storefront.db.session import make_session_factory
from storefront.models import Base, Product, ProductImage, Specification, Variant
from storefront.services.api_client import ApiClient
from storefront.services.storage import MemoryKeyValueStore, SqlKeyValueStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, delay, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class FakeScheduler:
    def __init__(self) -> None:
        self.timers = []

    def __call__(self, delay, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def storage():
    return MemoryKeyValueStore()


@pytest.fixture
def engine():
    """In-memory SQLite DB for fast testing."""
    _engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    yield _engine
    Base.metadata.drop_all(_engine)


@pytest.fixture
def sql_storage(engine):
    return SqlKeyValueStore(make_session_factory(engine))


@pytest.fixture
def api():
    client = MagicMock(spec=ApiClient)
    client.base_url = "http://api.test"
    client.resolve_file_url.side_effect = lambda url: url or ""
    return client


@pytest.fixture
def tee_shirt() -> Product:
    return Product(
        id="tee",
        name="Cotton Tee",
        price=20.0,
        category_id="cat-apparel",
        image="https://cdn.test/tee.jpg",
        images=[
            ProductImage(url="https://cdn.test/tee-front.jpg", alt_text="Tee front", position=0),
            ProductImage(url="https://cdn.test/tee-blue.jpg", alt_text="Blue tee on model", position=1),
            ProductImage(url="https://cdn.test/tee-red.jpg", alt_text="RED tee folded", position=2),
        ],
        variants=[
            Variant(id="v-red-s", sku="TEE-R-S", price=20.0, attribute_values={"Color": "Red", "Size": "S"}),
            Variant(
                id="v-blue-m",
                sku="TEE-B-M",
                price=22.0,
                compare_at_price=30.0,
                attribute_values={"Color": "Blue", "Size": "M"},
            ),
        ],
        specifications=[
            Specification(key="Material", value={"pt": "Algodão", "es": "Algodón"}),
            Specification(key="color", value={"pt": "Vários", "es": "Varios"}),
        ],
    )
