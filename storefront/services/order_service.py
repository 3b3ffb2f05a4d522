from typing import Dict, List

from ..models.cart_item import CartItem
from .api_client import ApiClient
from .logging import log_event
from .pricing import PriceBreakdown, round_money

ORDERS_PATH = "/api/orders"
PAYMENTS_PATH = "/api/payments/checkout"

PAYMENT_METHODS = {"mbway", "mbref", "klarna"}


def payment_provider(method: str) -> str:
    return "klarna" if method == "klarna" else "ifthenpay"


def payment_method_api(method: str) -> str:
    return "mb_reference" if method == "mbref" else method


def order_lines(items: List[CartItem]) -> List[Dict]:
    return [
        {
            "product_id": it.resolved_product_id,
            "variant_id": it.variant_id or None,
            "product_name": it.name,
            "sku": it.variant_id or it.product_id or it.id,
            "quantity": it.quantity,
            "unit_price": it.price,
        }
        for it in items
    ]


class OrderService:
    """Order creation and payment initiation against the order/payment APIs."""

    def __init__(self, api: ApiClient, *, return_url: str = "") -> None:
        self._api = api
        self._return_url = return_url

    def create_order(
        self,
        *,
        customer_name: str,
        customer_email: str,
        shipping_address: str,
        shipping_region: str,
        items: List[CartItem],
        totals: PriceBreakdown,
    ) -> Dict:
        payload = {
            "customer_name": customer_name,
            "customer_email": customer_email,
            "shipping_address": shipping_address,
            "shipping_region": shipping_region,
            "items": order_lines(items),
            "discount_total": float(round_money(totals.discount)),
        }
        created = self._api.post_json(ORDERS_PATH, payload)
        order = created if isinstance(created, dict) else {}
        log_event(
            "info",
            "order.created",
            order_id=order.get("id"),
            order_number=order.get("order_number"),
            items=len(items),
            grand_total=float(round_money(totals.grand_total)),
        )
        return order

    def initiate_payment(self, *, order_id, method: str, phone: str, email: str) -> Dict:
        if method not in PAYMENT_METHODS:
            raise ValueError(f"unsupported payment method: {method}")
        provider = payment_provider(method)
        payload = {
            "order_id": order_id,
            "provider": provider,
            "method": payment_method_api(method),
            "customer": {"phone": phone, "email": email},
            "callback_url": f"{self._api.base_url}/api/payments/webhooks/{provider}",
            "return_url": f"{self._return_url.rstrip('/')}/order-confirmation" if self._return_url else "",
        }
        result = self._api.post_json(PAYMENTS_PATH, payload)
        log_event("info", "payment.initiated", order_id=order_id, provider=provider)
        return result if isinstance(result, dict) else {}

    @staticmethod
    def manual_payment() -> Dict:
        return {
            "payment": {"id": 0, "provider": "manual", "method": "manual", "status": "pending"},
            "instructions": None,
            "payment_url": None,
        }

