import json
from typing import Any, Callable, Dict, List, Optional

from ..models.cart_item import to_finite
from ..models.catalog import Category, Product, ProductImage, Specification, Variant


def _identity(url: Optional[str]) -> str:
    return url or ""


def parse_attribute_values(value: Any) -> Dict[str, str]:
    """Variant attributes may arrive as a mapping or as a JSON-encoded string."""
    source = value
    if isinstance(value, str):
        try:
            source = json.loads(value)
        except ValueError:
            return {}
    if not isinstance(source, dict):
        return {}
    result: Dict[str, str] = {}
    for key, raw in source.items():
        normalized = str(key).strip()
        if not normalized or raw is None:
            continue
        result[normalized] = str(raw)
    return result


def parse_specifications(value: Any) -> List[Specification]:
    if not isinstance(value, list):
        return []
    rows: List[Specification] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        key = item.get("key").strip() if isinstance(item.get("key"), str) else ""
        if not key:
            continue
        raw = item.get("value")
        if isinstance(raw, dict):
            pt = raw.get("pt") if isinstance(raw.get("pt"), str) else ""
            es = raw.get("es") if isinstance(raw.get("es"), str) else ""
            if not pt and not es:
                continue
            rows.append(Specification(key=key, value={"pt": pt or es, "es": es or pt}))
        elif isinstance(raw, str) and raw.strip():
            rows.append(Specification(key=key, value={"pt": raw.strip(), "es": raw.strip()}))
    return rows


def to_variant(raw: Dict, index: int, product_id: str, default_price: float) -> Variant:
    price = to_finite(raw.get("price"))
    compare_at = raw.get("compare_at_price")
    return Variant(
        id=str(raw.get("id") if raw.get("id") is not None else raw.get("sku") or f"{product_id}-variant-{index}"),
        sku=raw.get("sku") or None,
        price=price if price is not None and price >= 0 else default_price,
        compare_at_price=(to_finite(compare_at) or 0.0) if compare_at is not None else None,
        currency=raw.get("currency") or "EUR",
        is_active=raw.get("is_active") is not False,
        attribute_values=parse_attribute_values(raw.get("attribute_values")),
    )


def to_product(row: Any, resolve_url: Callable[[Optional[str]], str] = _identity) -> Optional[Product]:
    """Map one catalog API row; rows without an id are skipped."""
    if not isinstance(row, dict) or not row.get("id"):
        return None
    product_id = str(row["id"])
    raw_variants = [v for v in row.get("variants") or [] if isinstance(v, dict)]
    primary = next((v for v in raw_variants if v.get("is_active") is not False), raw_variants[0] if raw_variants else None)

    base_price = to_finite((primary or {}).get("price"))
    if base_price is None:
        base_price = to_finite(row.get("base_price")) or 0.0
    compare_at = to_finite((primary or {}).get("compare_at_price")) or 0.0

    images: List[ProductImage] = []
    for index, image in enumerate(row.get("images") or []):
        if not isinstance(image, dict):
            continue
        url = resolve_url(image.get("image_url"))
        if not url:
            continue
        position = to_finite(image.get("position"))
        images.append(
            ProductImage(url=url, alt_text=image.get("alt_text") or "", position=int(position if position is not None else index))
        )
    images.sort(key=lambda img: img.position)

    return Product(
        id=product_id,
        name=row.get("name_pt") or row.get("name_es") or row.get("name") or f"Produto {product_id[:6]}",
        price=base_price,
        original_price=compare_at if compare_at > base_price else None,
        category_id=row.get("category_id") or None,
        category_slug=row.get("category_slug") or None,
        image=images[0].url if images else "",
        images=images,
        variants=[to_variant(v, i, product_id, base_price) for i, v in enumerate(raw_variants)],
        specifications=parse_specifications(row.get("specifications")),
        description=row.get("description_pt") or row.get("description_es") or row.get("description") or "",
        is_active=row.get("is_active") is not False,
    )


def to_category(row: Any, resolve_url: Callable[[Optional[str]], str] = _identity) -> Optional[Category]:
    if not isinstance(row, dict) or row.get("is_active") is False:
        return None
    category_id = row.get("slug") or row.get("id")
    if not category_id:
        return None
    count = to_finite(row.get("product_count"))
    return Category(
        id=str(category_id),
        name=row.get("name_pt") or row.get("name_es") or str(category_id),
        slug=row.get("slug") or str(category_id),
        image=resolve_url(row.get("image_url")),
        product_count=int(count) if count is not None else 0,
    )
