"""Pricing Calculator.

A pure function of its inputs: the same items, promo code, shipping method
and policy always produce the same breakdown. Every amount is a ``Decimal``
rounded half-up to cents, and ``total`` is computed from the already-rounded
components so the parts always add up to the whole.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

from storefront.pricing.policy import (
    DEFAULT_POLICY,
    PricingPolicy,
    ShippingMethod,
    TaxBase,
    normalize_promo_code,
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(amount) -> Decimal:
    """Round ``amount`` half-up to two decimal places."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    promo_code: str | None = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "discount": float(self.discount),
            "shipping": float(self.shipping),
            "tax": float(self.tax),
            "total": float(self.total),
            "promoCode": self.promo_code,
            "shippingMethod": self.shipping_method.value,
        }


def resolve_shipping_method(shipping_method) -> ShippingMethod:
    if isinstance(shipping_method, ShippingMethod):
        return shipping_method
    try:
        return ShippingMethod(str(shipping_method).strip().lower())
    except ValueError:
        raise ValidationError({"shipping_method": [f"Unknown shipping method: {shipping_method}"]}) from None


def _line_amount(item) -> Decimal:
    if isinstance(item, dict):
        price, quantity = item.get("price", 0), item.get("quantity", 0)
    else:
        price, quantity = item.price, item.quantity
    return Decimal(str(price)) * int(quantity)


def calculate(
    items: Iterable,
    promo_code: str | None = None,
    shipping_method: ShippingMethod | str = ShippingMethod.STANDARD,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> PriceBreakdown:
    """Price ``items`` (anything with ``price`` and ``quantity``).

    Raises ``ValidationError`` keyed ``promo_code`` for an unknown code and
    keyed ``shipping_method`` for an unknown method.
    """
    method = resolve_shipping_method(shipping_method)
    subtotal = to_cents(sum((_line_amount(item) for item in items), Decimal("0")))

    code = normalize_promo_code(promo_code) if promo_code else ""
    discount = ZERO
    if code:
        rate = policy.promo_rate(code)
        if rate is None:
            raise ValidationError({"promo_code": [f"Unknown promo code: {promo_code.strip()}"]})
        discount = to_cents(subtotal * rate)

    if method is ShippingMethod.STANDARD and subtotal >= policy.free_shipping_threshold:
        shipping = ZERO
    else:
        shipping = to_cents(policy.shipping_fees[method])

    taxable = subtotal - discount if policy.tax_base is TaxBase.AFTER_DISCOUNT else subtotal
    tax = to_cents(taxable * policy.tax_rate)

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=subtotal - discount + shipping + tax,
        promo_code=code or None,
        shipping_method=method,
    )
