"""Payment method details: a tagged union of card and wallet payments.

The union is resolved exactly once, when the request is built; each variant
validates itself and renders only its own wire details.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import ClassVar

from protean.exceptions import ValidationError

from storefront.api.schemas import CreditCardDetailsSchema, PaypalDetailsSchema

MIN_CARD_DIGITS = 13
CARD_NUMBER_PATTERN = re.compile(r"^[0-9]+$")
EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/([0-9]{2})$")
CVV_PATTERN = re.compile(r"^[0-9]{3,4}$")

Clock = Callable[[], date]


def utc_today() -> date:
    return datetime.now(UTC).date()


@dataclass(frozen=True)
class CardPayment:
    number: str
    holder_name: str
    expiry: str  # MM/YY
    cvv: str

    wire_method: ClassVar[str] = "CREDIT_CARD"

    @property
    def digits(self) -> str:
        return re.sub(r"\s+", "", self.number or "")

    @property
    def last4(self) -> str:
        return self.digits[-4:]

    def expiry_parts(self) -> tuple[int, int] | None:
        """(year, month) from ``MM/YY`` read as ``20YY-MM``; None when unparseable."""
        match = EXPIRY_PATTERN.match((self.expiry or "").strip())
        if not match:
            return None
        return 2000 + int(match.group(2)), int(match.group(1))

    def errors(self, today: date) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}

        digits = self.digits
        if not digits:
            errors["card_number"] = ["Card number is required"]
        elif not CARD_NUMBER_PATTERN.match(digits):
            errors["card_number"] = ["Card number must contain only digits"]
        elif len(digits) < MIN_CARD_DIGITS:
            errors["card_number"] = [f"Card number must have at least {MIN_CARD_DIGITS} digits"]

        if not (self.holder_name or "").strip():
            errors["card_holder_name"] = ["Name on card is required"]

        expiry = self.expiry_parts()
        if expiry is None:
            errors["expiry"] = ["Invalid expiry format. Use MM/YY"]
        elif expiry < (today.year, today.month):
            errors["expiry"] = ["Card has expired"]

        if not CVV_PATTERN.match((self.cvv or "").strip()):
            errors["cvv"] = ["CVV must be 3 or 4 digits"]

        return errors

    def details(self, user=None) -> dict:
        year, month = self.expiry_parts()
        return {
            "credit_card_details": CreditCardDetailsSchema(
                card_number=self.digits,
                card_holder_name=self.holder_name.strip(),
                expiry_month=f"{month:02d}",
                expiry_year=str(year),
                cvv=self.cvv.strip(),
            )
        }

    def __repr__(self) -> str:
        return f"CardPayment(last4={self.last4!r}, expiry={self.expiry!r})"


@dataclass(frozen=True)
class WalletPayment:
    """A wallet (PayPal-style) payment. The email defaults to the signed-in user's."""

    email: str = ""
    token: str = ""

    wire_method: ClassVar[str] = "PAYPAL"

    def resolved_email(self, user=None) -> str:
        email = (self.email or "").strip()
        if not email and user is not None:
            email = (user.email or "").strip()
        return email

    def errors(self, today: date, user=None) -> dict[str, list[str]]:
        if not self.resolved_email(user):
            return {"email": ["Wallet email is required"]}
        return {}

    def details(self, user=None) -> dict:
        return {
            "paypal_details": PaypalDetailsSchema(
                email=self.resolved_email(user),
                token=(self.token or "").strip(),
            )
        }


PaymentMethodDetails = CardPayment | WalletPayment


def validate_method(method: PaymentMethodDetails, user=None, clock: Clock = utc_today) -> None:
    """Raise ``ValidationError`` with every problem in ``method``."""
    today = clock()
    if isinstance(method, CardPayment):
        errors = method.errors(today)
    elif isinstance(method, WalletPayment):
        errors = method.errors(today, user=user)
    else:
        errors = {"payment_method": [f"Unsupported payment method: {type(method).__name__}"]}
    if errors:
        raise ValidationError(errors)
