"""
Variant resolution for configurable products.

Pure functions only: given a product's variants and a (possibly partial or stale)
attribute selection, compute the valid options per attribute and the single
variant the selection resolves to. Image ordering, specification merging and the
cart line-item descriptor are derived from the resolved variant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models.cart_item import CartItem, make_item_id
from ..models.catalog import Product, ProductImage, Specification, Variant

COLOR_ATTRIBUTE_KEYS = {"color", "colour", "cor", "cores"}
SIZE_ATTRIBUTE_KEYS = {"size", "tamanho", "tam", "talla"}
DEFAULT_LOCALES = ("pt", "es")

COLOR_SWATCH_MAP = {
    "black": "#111827",
    "preto": "#111827",
    "branco": "#f3f4f6",
    "white": "#f3f4f6",
    "azul": "#2563eb",
    "blue": "#2563eb",
    "vermelho": "#dc2626",
    "red": "#dc2626",
    "verde": "#16a34a",
    "green": "#16a34a",
    "amarelo": "#eab308",
    "yellow": "#eab308",
    "roxo": "#9333ea",
    "purple": "#9333ea",
    "rosa": "#ec4899",
    "pink": "#ec4899",
    "cinza": "#6b7280",
    "gray": "#6b7280",
    "cinzento": "#6b7280",
    "laranja": "#f97316",
    "orange": "#f97316",
    "castanho": "#92400e",
    "brown": "#92400e",
}
DEFAULT_SWATCH = "#9ca3af"

_HEX_IN_TEXT = re.compile(r"#([0-9a-f]{6}|[0-9a-f]{3})", re.IGNORECASE)
_HEX_ONLY = re.compile(r"^#[0-9a-f]{3}([0-9a-f]{3})?$", re.IGNORECASE)


def normalize_attribute_key(key: str) -> str:
    return key.strip().lower()


def is_color_attribute(key: str) -> bool:
    return normalize_attribute_key(key) in COLOR_ATTRIBUTE_KEYS


def is_size_attribute(key: str) -> bool:
    return normalize_attribute_key(key) in SIZE_ATTRIBUTE_KEYS


def humanize_attribute_key(key: str) -> str:
    return re.sub(r"[_-]+", " ", key)


@dataclass
class AttributeDimension:
    id: str
    label: str


@dataclass
class VariantResolution:
    attributes: List[AttributeDimension] = field(default_factory=list)
    options_by_attribute: Dict[str, List[str]] = field(default_factory=dict)
    resolved_variant: Optional[Variant] = None

    @property
    def out_of_stock(self) -> bool:
        return self.resolved_variant is None

    def find_attribute(self, predicate) -> Optional[AttributeDimension]:
        return next((a for a in self.attributes if predicate(a.id)), None)


def active_variants(variants: Iterable[Variant]) -> List[Variant]:
    return [v for v in variants or [] if v.is_active]


def attribute_value(attribute_values: Mapping[str, str], attribute_id: str) -> str:
    for raw_key, value in (attribute_values or {}).items():
        if normalize_attribute_key(raw_key) == attribute_id:
            return value
    return ""


def collect_dimensions(variants: Iterable[Variant]) -> List[AttributeDimension]:
    """Attribute dimensions in first-seen order, keyed by normalized name."""
    seen: Dict[str, str] = {}
    for variant in variants:
        for raw_key in variant.attribute_values or {}:
            normalized = normalize_attribute_key(raw_key)
            if normalized and normalized not in seen:
                seen[normalized] = raw_key
    return [AttributeDimension(id=k, label=v) for k, v in seen.items()]


def normalize_selection(selection: Optional[Mapping[str, str]]) -> Dict[str, str]:
    return {normalize_attribute_key(k): v for k, v in (selection or {}).items()}


def _matches(
    variant: Variant,
    selection: Mapping[str, str],
    dimensions: Sequence[AttributeDimension],
    skip: Optional[str] = None,
) -> bool:
    for dimension in dimensions:
        if dimension.id == skip:
            continue
        selected = selection.get(dimension.id)
        if not selected:
            continue
        if attribute_value(variant.attribute_values, dimension.id) != selected:
            return False
    return True


def _distinct_values(variants: Iterable[Variant], attribute_id: str) -> List[str]:
    values: List[str] = []
    for variant in variants:
        value = attribute_value(variant.attribute_values, attribute_id)
        if value and value not in values:
            values.append(value)
    return values


def resolve_options(variants: Sequence[Variant], selection: Optional[Mapping[str, str]] = None) -> VariantResolution:
    """Narrow each attribute's options against the selection and resolve a variant.

    A dimension's options come from the active variants that agree with the
    selection on every *other* dimension. When that leaves nothing to offer, all
    values seen across active variants are offered instead. The resolved variant
    is the first exact match, or the first active variant.
    """
    active = active_variants(variants)
    dimensions = collect_dimensions(active)
    selected = normalize_selection(selection)

    options: Dict[str, List[str]] = {}
    for dimension in dimensions:
        compatible = [v for v in active if _matches(v, selected, dimensions, skip=dimension.id)]
        values = _distinct_values(compatible, dimension.id)
        if not values:
            values = _distinct_values(active, dimension.id)
        options[dimension.id] = values

    resolved = next((v for v in active if _matches(v, selected, dimensions)), None)
    if resolved is None and active:
        resolved = active[0]

    return VariantResolution(attributes=dimensions, options_by_attribute=options, resolved_variant=resolved)


def heal_selection(resolution: VariantResolution, selection: Mapping[str, str]) -> Tuple[Mapping[str, str], bool]:
    """Replace missing or no-longer-valid values with the first valid option.

    Returns the original mapping untouched when nothing needs to change.
    """
    current = normalize_selection(selection)
    changed = False
    for dimension in resolution.attributes:
        options = resolution.options_by_attribute.get(dimension.id) or []
        if not options:
            continue
        if not current.get(dimension.id) or current[dimension.id] not in options:
            current[dimension.id] = options[0]
            changed = True
    return (current, True) if changed else (selection, False)


def settle_selection(
    variants: Sequence[Variant],
    selection: Optional[Mapping[str, str]],
    prefer: Optional[str] = None,
) -> Tuple[Dict[str, str], VariantResolution]:
    """Heal ``selection`` until it is stable against its own option sets.

    Dimensions are healed one at a time, re-resolving after each change. The
    ``prefer`` dimension (usually the one the shopper just picked) is healed
    last so the other dimensions adapt to it first.
    """
    current = normalize_selection(selection)
    resolution = resolve_options(variants, current)
    preferred = normalize_attribute_key(prefer) if prefer else None
    order = sorted(resolution.attributes, key=lambda d: d.id == preferred)
    for _ in range(len(order) + 1):
        changed = False
        for dimension in order:
            options = resolution.options_by_attribute.get(dimension.id) or []
            if options and current.get(dimension.id) not in options:
                current[dimension.id] = options[0]
                resolution = resolve_options(variants, current)
                changed = True
        if not changed:
            return current, resolution

    # Dimensions kept invalidating each other; adopt the resolved variant's values.
    variant = resolution.resolved_variant
    if variant is not None:
        current = {
            d.id: attribute_value(variant.attribute_values, d.id) or current.get(d.id, "")
            for d in resolution.attributes
        }
        resolution = resolve_options(variants, current)
    return current, resolution


def seed_selection(variants: Sequence[Variant]) -> Dict[str, str]:
    """Selection taken from the first active variant's attribute values."""
    active = active_variants(variants)
    if not active:
        return {}
    seed = active[0]
    return {d.id: attribute_value(seed.attribute_values, d.id) for d in collect_dimensions(active)}


def rank_images(images: Sequence[ProductImage], variant: Optional[Variant]) -> List[ProductImage]:
    """Images whose alt text mentions one of the variant's values come first."""
    if variant is None:
        return list(images)
    tokens = [str(v).strip().lower() for v in (variant.attribute_values or {}).values() if str(v).strip()]
    if not tokens:
        return list(images)

    def score(image: ProductImage) -> int:
        alt_text = (image.alt_text or "").lower()
        return 0 if alt_text and any(token in alt_text for token in tokens) else 1

    return sorted(images, key=score)


def merge_specifications(
    specifications: Sequence[Specification], variant: Optional[Variant]
) -> List[Specification]:
    if variant is None:
        return list(specifications)
    by_key: Dict[str, str] = {}
    for key, value in (variant.attribute_values or {}).items():
        if not key or value is None or not str(value).strip():
            continue
        by_key[normalize_attribute_key(key)] = str(value).strip()
    if not by_key:
        return list(specifications)

    merged: List[Specification] = []
    for specification in specifications:
        variant_value = by_key.pop(normalize_attribute_key(specification.key), None)
        if not variant_value:
            merged.append(specification)
            continue
        locales = list(specification.value) or list(DEFAULT_LOCALES)
        merged.append(Specification(key=specification.key, value={loc: variant_value for loc in locales}))

    for key, value in by_key.items():
        merged.append(Specification(key=humanize_attribute_key(key), value={loc: value for loc in DEFAULT_LOCALES}))
    return merged


def display_prices(product: Product, variant: Optional[Variant]) -> Tuple[float, Optional[float]]:
    """(price, compare-at price) to show; compare-at only when above the price."""
    if variant is None:
        return product.price, product.original_price
    price = variant.price
    if variant.compare_at_price and variant.compare_at_price > price:
        return price, variant.compare_at_price
    return price, None


def parse_color_value(value: str) -> Tuple[str, str]:
    """Split values such as ``Red:#ff0000`` or ``Navy | #001f3f`` into (label, hex)."""
    raw = (value or "").strip()
    if not raw:
        return "", ""
    match = _HEX_IN_TEXT.search(raw)
    hex_code = f"#{match.group(1)}" if match else ""

    label = raw
    for separator in (":", "|"):
        if separator in raw:
            left = raw.split(separator, 1)[0].strip()
            if left:
                label = left
            break

    label = _HEX_IN_TEXT.sub("", label)
    label = re.sub(r"\(\s*\)", "", label).strip()
    return label or raw, hex_code


def resolve_color_swatch(value: str) -> str:
    label, hex_code = parse_color_value(value)
    if hex_code:
        return hex_code
    normalized = label.strip().lower()
    if _HEX_ONLY.match(normalized):
        return normalized
    return COLOR_SWATCH_MAP.get(normalized, DEFAULT_SWATCH)


def build_line_item(
    product: Product,
    resolution: VariantResolution,
    selection: Mapping[str, str],
    *,
    quantity: int = 1,
    image: Optional[str] = None,
    fallback_size: Optional[str] = None,
    fallback_color: Optional[str] = None,
) -> CartItem:
    """Cart line-item descriptor for the product as currently configured."""
    if int(quantity) < 1:
        raise ValueError("quantity must be > 0")
    variant = resolution.resolved_variant
    selected = normalize_selection(selection)

    color_attribute = resolution.find_attribute(is_color_attribute)
    size_attribute = resolution.find_attribute(is_size_attribute)
    dynamic_color = selected.get(color_attribute.id) if color_attribute else None
    dynamic_size = selected.get(size_attribute.id) if size_attribute else None

    price, original_price = display_prices(product, variant)
    if not image:
        ranked = [img.url for img in rank_images(product.images, variant) if img.url]
        image = ranked[0] if ranked else product.image

    return CartItem(
        id=make_item_id(product.id, variant.id if variant else None),
        product_id=product.id,
        variant_id=variant.id if variant else None,
        category_id=product.category_id or product.category,
        name=product.name,
        price=price,
        original_price=original_price,
        image=image,
        quantity=int(quantity),
        selected_size=dynamic_size or fallback_size,
        selected_color=parse_color_value(dynamic_color)[0] if dynamic_color else fallback_color,
    )
