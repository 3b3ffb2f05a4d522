"""Catalog read models as exposed by the catalog API."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional


@dataclass
class Variant:
    """A concrete purchasable configuration of a product."""

    id: str
    price: float
    sku: Optional[str] = None
    compare_at_price: Optional[float] = None
    currency: str = "EUR"
    is_active: bool = True
    attribute_values: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProductImage:
    url: str
    alt_text: str = ""
    position: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Specification:
    """One specification row; ``value`` maps locale to text."""

    key: str
    value: Dict[str, str]

    def to_dict(self) -> dict:
        return {"key": self.key, "value": dict(self.value)}


@dataclass
class Product:
    id: str
    name: str
    price: float = 0.0
    original_price: Optional[float] = None
    category_id: Optional[str] = None
    category_slug: Optional[str] = None
    image: str = ""
    images: List[ProductImage] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)
    specifications: List[Specification] = field(default_factory=list)
    description: str = ""
    is_active: bool = True

    @property
    def active_variants(self) -> List[Variant]:
        return [v for v in self.variants if v.is_active]

    @property
    def category(self) -> str:
        return self.category_slug or self.category_id or "general"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "original_price": self.original_price,
            "category_id": self.category_id,
            "category_slug": self.category_slug,
            "image": self.image,
            "images": [img.to_dict() for img in self.images],
            "variants": [v.to_dict() for v in self.variants],
            "specifications": [s.to_dict() for s in self.specifications],
            "description": self.description,
            "is_active": self.is_active,
        }


@dataclass
class Category:
    id: str
    name: str
    slug: str
    image: str = ""
    product_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
