"""Pricing policy constants.

Promo codes, shipping fees and tax are configuration data, not logic: the
calculator reads them from a ``PricingPolicy`` so alternative policies can be
tested side by side with the default one.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


class TaxBase(Enum):
    """Which amount the tax rate applies to."""

    AFTER_DISCOUNT = "after_discount"  # (subtotal - discount) * rate
    BEFORE_DISCOUNT = "before_discount"  # subtotal * rate


PROMO_CODES = MappingProxyType({"SAVE10": Decimal("0.10")})

FREE_SHIPPING_THRESHOLD = Decimal("35.00")

SHIPPING_FEES = MappingProxyType(
    {
        ShippingMethod.STANDARD: Decimal("4.99"),
        ShippingMethod.EXPRESS: Decimal("9.99"),
        ShippingMethod.OVERNIGHT: Decimal("19.99"),
    }
)

TAX_RATE = Decimal("0.08")


@dataclass(frozen=True)
class PricingPolicy:
    promo_codes: MappingProxyType = field(default_factory=lambda: PROMO_CODES)
    shipping_fees: MappingProxyType = field(default_factory=lambda: SHIPPING_FEES)
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD
    tax_rate: Decimal = TAX_RATE
    tax_base: TaxBase = TaxBase.AFTER_DISCOUNT

    def promo_rate(self, code: str) -> Decimal | None:
        return self.promo_codes.get(normalize_promo_code(code))


def normalize_promo_code(code: str) -> str:
    return (code or "").strip().upper()


DEFAULT_POLICY = PricingPolicy()
