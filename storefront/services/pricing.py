from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Union

FREE_SHIPPING_THRESHOLD = Decimal("50.00")
SHIPPING_RATE = Decimal("4.99")
CENTS = Decimal("0.01")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def round_money(value: Number) -> Decimal:
    """Round to cents; only used when totals leave the engine."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def clamp_discount(applied: Number, subtotal: Number) -> Decimal:
    return min(max(to_decimal(applied), Decimal("0")), to_decimal(subtotal))


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    subtotal_after_discount: Decimal
    shipping: Decimal
    grand_total: Decimal
    total_items: int = 0

    @property
    def free_shipping(self) -> bool:
        return self.shipping == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": float(round_money(self.subtotal)),
            "discount": float(round_money(self.discount)),
            "subtotal_after_discount": float(round_money(self.subtotal_after_discount)),
            "shipping": float(round_money(self.shipping)),
            "grand_total": float(round_money(self.grand_total)),
            "total_items": self.total_items,
        }


def calculate_totals(
    items: Iterable[Any],
    applied_discount: Number = 0,
    *,
    free_shipping_threshold: Number = FREE_SHIPPING_THRESHOLD,
    shipping_rate: Number = SHIPPING_RATE,
) -> PriceBreakdown:
    """Totals for ``items`` (anything with ``price`` and ``quantity``).

    Shipping is waived when the subtotal *before* the discount reaches the
    threshold.
    """
    items = list(items)
    subtotal = sum((to_decimal(it.price) * Decimal(int(it.quantity)) for it in items), Decimal("0"))
    discount = clamp_discount(applied_discount, subtotal)
    after_discount = subtotal - discount
    # NOTE: threshold uses the pre-discount subtotal; pending product-owner confirmation
    shipping = Decimal("0") if subtotal >= to_decimal(free_shipping_threshold) else to_decimal(shipping_rate)
    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        subtotal_after_discount=after_discount,
        shipping=shipping,
        grand_total=after_discount + shipping,
        total_items=sum(int(it.quantity) for it in items),
    )
