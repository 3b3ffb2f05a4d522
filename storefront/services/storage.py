"""Key-value persistence surface for shopper-scoped client state."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from ..db.session import get_session_factory_for
from ..models.storage_entry import StorageEntry

logger = logging.getLogger(__name__)

GUEST_KEY = "guest"
LEGACY_CART_KEY = "cart:items"
CART_KEY_PREFIX = "cart:items:v1:"
COUPON_KEY_PREFIX = "cart:coupon:v1:"
BUY_NOW_COUPON_KEY_PREFIX = "product:buy-now-coupon:v1:"


def normalize_shopper_key(email: Optional[str]) -> str:
    normalized = (email or "").strip().lower()
    return normalized or GUEST_KEY


def cart_key(shopper_key: str) -> str:
    return f"{CART_KEY_PREFIX}{shopper_key}"


def coupon_key(shopper_key: str) -> str:
    return f"{COUPON_KEY_PREFIX}{shopper_key}"


def buy_now_coupon_key(shopper_key: str, product_id: Optional[str]) -> Optional[str]:
    if not product_id:
        return None
    return f"{BUY_NOW_COUPON_KEY_PREFIX}{shopper_key}:{product_id}"


class KeyValueStore:
    """Minimal string key/value interface shared by all backends."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def get_json(self, key: str) -> Any:
        """Decode a stored JSON value; unparsable payloads read as ``None``."""
        raw = self.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unparsable storage entry %s", key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SqlKeyValueStore(KeyValueStore):
    """Storage entries backed by the ``storage_entry`` table."""

    def __init__(self, session_factory=None, *, database_url: Optional[str] = None) -> None:
        if session_factory is None:
            if not database_url:
                raise ValueError("session_factory or database_url required")
            session_factory = get_session_factory_for(database_url)
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as session:
            entry = session.query(StorageEntry).filter(StorageEntry.key == key).first()
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as session:
            entry = session.query(StorageEntry).filter(StorageEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                session.add(StorageEntry(key=key, value=value))
            session.flush()

    def delete(self, key: str) -> None:
        with self._session_factory() as session:
            entry = session.query(StorageEntry).filter(StorageEntry.key == key).first()
            if entry:
                session.delete(entry)
                session.flush()
