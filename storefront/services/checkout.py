"""Checkout steps: contact info, shipping address, payment method, submitted."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..models.cart_item import AppliedCoupon, BuyNowCouponSession, CartItem
from .cart_store import CartStore
from .logging import log_event
from .order_service import PAYMENT_METHODS, OrderService
from .pricing import FREE_SHIPPING_THRESHOLD, SHIPPING_RATE, PriceBreakdown, calculate_totals

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


class CheckoutValidationError(ValueError):
    pass


class CheckoutStep(enum.IntEnum):
    CONTACT_INFO = 1
    SHIPPING_ADDRESS = 2
    PAYMENT_METHOD = 3
    SUBMITTED = 4


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.search((value or "").strip()))


@dataclass
class ContactInfo:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class ShippingAddress:
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "PT"

    def one_line(self) -> str:
        return f"{self.address}, {self.postal_code} {self.city}, {self.country}"


@dataclass
class OrderConfirmation:
    order: Dict
    payment: Dict
    coupon_code: Optional[str]
    totals: PriceBreakdown
    is_buy_now: bool = False
    items: List[CartItem] = field(default_factory=list)

    def to_dict(self) -> Dict:
        totals = self.totals.to_dict()
        return {
            "order": self.order,
            "payment": self.payment,
            "coupon_code": self.coupon_code,
            "discount_total": totals["discount"],
            "shipping_total": totals["shipping"],
            "grand_total": totals["grand_total"],
            "is_buy_now": self.is_buy_now,
        }


class Checkout:
    """Checkout for either the whole cart or a single buy-now item.

    Moving forward validates the current step; moving back never does.
    Submitting is only possible from the payment step.
    """

    def __init__(
        self,
        cart: CartStore,
        orders: OrderService,
        *,
        buy_now_item: Optional[CartItem] = None,
        buy_now_coupon: Optional[Union[BuyNowCouponSession, AppliedCoupon]] = None,
        shopper_email: Optional[str] = None,
        bypass_payment: bool = True,
        free_shipping_threshold=FREE_SHIPPING_THRESHOLD,
        shipping_rate=SHIPPING_RATE,
    ) -> None:
        self._cart = cart
        self._orders = orders
        self._buy_now_item = buy_now_item
        self._buy_now_coupon = buy_now_coupon if buy_now_coupon is not None and buy_now_coupon.code.strip() else None
        self._shopper_email = (shopper_email or "").strip() or None
        self._bypass_payment = bypass_payment
        self._free_shipping_threshold = free_shipping_threshold
        self._shipping_rate = shipping_rate
        self.step = CheckoutStep.CONTACT_INFO
        self.contact = ContactInfo(email=self._shopper_email or "")
        self.shipping = ShippingAddress()
        self.payment_method = "mbway"
        self.confirmation: Optional[OrderConfirmation] = None

    @property
    def is_buy_now(self) -> bool:
        return self._buy_now_item is not None

    @property
    def items(self) -> List[CartItem]:
        return [self._buy_now_item] if self._buy_now_item is not None else self._cart.items

    @property
    def coupon_code(self) -> Optional[str]:
        if self.is_buy_now:
            return self._buy_now_coupon.code if self._buy_now_coupon else None
        return self._cart.coupon_code

    def totals(self) -> PriceBreakdown:
        if self.is_buy_now:
            applied = self._buy_now_coupon.discount if self._buy_now_coupon else 0
        else:
            coupon = self._cart.applied_coupon
            applied = coupon.discount if coupon else 0
        return calculate_totals(
            self.items,
            applied,
            free_shipping_threshold=self._free_shipping_threshold,
            shipping_rate=self._shipping_rate,
        )

    def checkout_email(self) -> str:
        return (self._shopper_email or self.contact.email).strip()

    def validate_contact(self) -> None:
        if not self.contact.first_name.strip() or not self.contact.last_name.strip():
            raise CheckoutValidationError("Please enter first name and last name.")
        if not is_valid_email(self.checkout_email()):
            raise CheckoutValidationError("Please enter a valid email.")
        if not self.contact.phone.strip():
            raise CheckoutValidationError("Please enter phone number.")

    def validate_shipping(self) -> None:
        if not self.shipping.address.strip():
            raise CheckoutValidationError("Please enter shipping address.")
        if not self.shipping.city.strip():
            raise CheckoutValidationError("Please enter shipping city.")
        if not self.shipping.postal_code.strip():
            raise CheckoutValidationError("Please enter postal code.")
        if not self.shipping.country.strip():
            raise CheckoutValidationError("Please select country.")

    def advance(self) -> CheckoutStep:
        if self.step == CheckoutStep.CONTACT_INFO:
            self.validate_contact()
            self.step = CheckoutStep.SHIPPING_ADDRESS
        elif self.step == CheckoutStep.SHIPPING_ADDRESS:
            self.validate_shipping()
            self.step = CheckoutStep.PAYMENT_METHOD
        elif self.step == CheckoutStep.PAYMENT_METHOD:
            raise CheckoutValidationError("Use submit() to place the order.")
        return self.step

    def back(self) -> CheckoutStep:
        if self.step in (CheckoutStep.SHIPPING_ADDRESS, CheckoutStep.PAYMENT_METHOD):
            self.step = CheckoutStep(self.step - 1)
        return self.step

    def submit(self) -> OrderConfirmation:
        """Create the order, then start payment unless payments are bypassed.

        Remote failures propagate and leave the checkout on the payment step.
        """
        if self.step != CheckoutStep.PAYMENT_METHOD:
            raise CheckoutValidationError("Order can only be placed from the payment step.")
        self.validate_contact()
        self.validate_shipping()
        if self.payment_method not in PAYMENT_METHODS:
            raise CheckoutValidationError("Please choose a payment method.")
        items = self.items
        if not items:
            raise CheckoutValidationError("Your cart is empty.")

        totals = self.totals()
        email = self.checkout_email()
        order = self._orders.create_order(
            customer_name=self.contact.full_name,
            customer_email=email,
            shipping_address=self.shipping.one_line(),
            shipping_region=self.shipping.city,
            items=items,
            totals=totals,
        )
        if self._bypass_payment:
            payment = OrderService.manual_payment()
        else:
            payment = self._orders.initiate_payment(
                order_id=order.get("id"),
                method=self.payment_method,
                phone=self.contact.phone,
                email=email,
            )

        self.confirmation = OrderConfirmation(
            order=order,
            payment=payment,
            coupon_code=self.coupon_code,
            totals=totals,
            is_buy_now=self.is_buy_now,
            items=items,
        )
        if not self.is_buy_now:
            self._cart.clear_cart()
        self.step = CheckoutStep.SUBMITTED
        log_event("info", "checkout.submitted", order_id=order.get("id"), buy_now=self.is_buy_now)
        return self.confirmation
