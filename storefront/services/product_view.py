from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..models.cart_item import CartItem
from ..models.catalog import Product, ProductImage, Specification, Variant
from .observable import Observable
from .variant_resolver import (
    VariantResolution,
    active_variants,
    build_line_item,
    display_prices,
    merge_specifications,
    normalize_attribute_key,
    rank_images,
    seed_selection,
    settle_selection,
)


class ProductView(Observable):
    """Attribute selection state for the product currently being configured.

    The selection is re-seeded from the first active variant whenever the product
    (or its first active variant) changes, and self-heals after every change so it
    always points at valid options.
    """

    def __init__(self, product: Optional[Product] = None) -> None:
        super().__init__()
        self._product: Optional[Product] = None
        self._seed_identity: Optional[Tuple[str, Optional[str]]] = None
        self._selection: Dict[str, str] = {}
        self._resolution = VariantResolution()
        if product is not None:
            self.set_product(product)

    @property
    def product(self) -> Optional[Product]:
        return self._product

    @property
    def selection(self) -> Dict[str, str]:
        return dict(self._selection)

    @property
    def resolution(self) -> VariantResolution:
        return self._resolution

    @property
    def resolved_variant(self) -> Optional[Variant]:
        return self._resolution.resolved_variant

    @property
    def options_by_attribute(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._resolution.options_by_attribute.items()}

    @property
    def out_of_stock(self) -> bool:
        if self._product is None:
            return True
        if not self._product.variants:
            return not self._product.is_active
        return self._resolution.out_of_stock

    @property
    def images(self) -> List[ProductImage]:
        if self._product is None:
            return []
        return [img for img in rank_images(self._product.images, self.resolved_variant) if img.url]

    @property
    def specifications(self) -> List[Specification]:
        if self._product is None:
            return []
        return merge_specifications(self._product.specifications, self.resolved_variant)

    @property
    def prices(self) -> Tuple[float, Optional[float]]:
        if self._product is None:
            return 0.0, None
        return display_prices(self._product, self.resolved_variant)

    def set_product(self, product: Optional[Product]) -> None:
        identity = None
        if product is not None:
            active = active_variants(product.variants)
            identity = (product.id, active[0].id if active else None)
        if identity != self._seed_identity:
            selection = seed_selection(product.variants) if product is not None else {}
        else:
            selection = self._selection
        self._product = product
        self._seed_identity = identity
        self._apply(selection, force=True)

    def select(self, attribute: str, value: str) -> None:
        key = normalize_attribute_key(attribute)
        selection = dict(self._selection)
        selection[key] = value
        self._apply(selection, prefer=key)

    def line_item(self, quantity: int = 1, **kwargs) -> Optional[CartItem]:
        if self._product is None:
            return None
        return build_line_item(self._product, self._resolution, self._selection, quantity=quantity, **kwargs)

    def _apply(self, selection: Dict[str, str], *, force: bool = False, prefer: Optional[str] = None) -> None:
        variants = self._product.variants if self._product is not None else []
        settled, resolution = settle_selection(variants, selection, prefer)
        changed = force or settled != self._selection
        self._selection = settled
        self._resolution = resolution
        if changed:
            self._notify()
