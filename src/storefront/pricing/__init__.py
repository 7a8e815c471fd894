from storefront.pricing.calculator import PriceBreakdown, calculate, to_cents
from storefront.pricing.policy import DEFAULT_POLICY, PricingPolicy, ShippingMethod, TaxBase

__all__ = [
    "DEFAULT_POLICY",
    "PriceBreakdown",
    "PricingPolicy",
    "ShippingMethod",
    "TaxBase",
    "calculate",
    "to_cents",
]
