from typing import Dict, List, Optional, Tuple
import time

from ..models.catalog import Category, Product
from ..utils.dto import to_category, to_product
from .api_client import ApiClient

PRODUCTS_PATH = "/api/products"
CATEGORIES_PATH = "/api/catalog/categories"


class CatalogService:
    """Read-only catalog access.

    Responsibilities:
    - List products and categories from the catalog API
    - Map API rows into catalog models
    - Cache list results for a short TTL
    """

    def __init__(self, api: ApiClient, *, cache_ttl_seconds: int = 60, clock=time.time) -> None:
        self._api = api
        self._cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        # path -> (ts, result)
        self._cache: Dict[str, Tuple[float, list]] = {}

    def _cached_rows(self, path: str) -> list:
        now = self._clock()
        cached = self._cache.get(path)
        if cached and now - cached[0] <= self._cache_ttl_seconds:
            return cached[1]
        rows = self._api.get_json(path)
        rows = rows if isinstance(rows, list) else []
        self._cache[path] = (now, rows)
        return rows

    def list_products(self, *, category: Optional[str] = None, query: Optional[str] = None) -> List[Product]:
        products = [p for p in (to_product(r, self._api.resolve_file_url) for r in self._cached_rows(PRODUCTS_PATH)) if p]
        if category:
            products = [p for p in products if category in (p.category_id, p.category_slug)]
        if query:
            needle = query.strip().lower()
            products = [p for p in products if needle in p.name.lower() or needle in p.description.lower()]
        return products

    def get_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.list_products() if p.id == product_id), None)

    def related_products(self, product: Product, limit: int = 4) -> List[Product]:
        return [p for p in self.list_products() if p.category == product.category and p.id != product.id][:limit]

    def list_categories(self) -> List[Category]:
        rows = self._cached_rows(CATEGORIES_PATH)
        return [c for c in (to_category(r, self._api.resolve_file_url) for r in rows) if c]

    def invalidate_cache(self) -> None:
        self._cache.clear()
