from storefront.models import CartItem, Variant


def make_item(item_id="p1", price=10.0, quantity=1, **overrides) -> CartItem:
    fields = dict(
        id=item_id,
        product_id=item_id.split(":")[0],
        name=f"Item {item_id}",
        price=price,
        image=f"https://cdn.test/{item_id}.jpg",
        quantity=quantity,
    )
    fields.update(overrides)
    return CartItem(**fields)


def make_variant(variant_id, price=20.0, active=True, **attributes) -> Variant:
    return Variant(id=variant_id, sku=f"SKU-{variant_id}", price=price, is_active=active, attribute_values=attributes)
