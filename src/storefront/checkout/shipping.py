"""Shipping details collected during checkout.

``ShippingForm`` is the editable draft behind the shipping step. It is
validated in one pass (every problem reported at once, keyed by field) and
only then turned into the immutable ``ShippingInfo`` value object that an
Order is created from.
"""

import re
from dataclasses import asdict, dataclass, fields

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from storefront.domain import storefront

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ZIP_PATTERN = re.compile(r"^[0-9]{5}(?:-?[0-9]{4})?$")

REQUIRED_FIELDS = ("first_name", "last_name", "email", "address", "city", "state", "zip_code")

_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "address": "Address",
    "city": "City",
    "state": "State",
    "zip_code": "ZIP code",
}


@storefront.value_object
class ShippingInfo:
    """Validated shipping details for one order."""

    first_name: String(required=True, max_length=100)
    last_name: String(required=True, max_length=100)
    email: String(required=True, max_length=254)
    address: String(required=True, max_length=255)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    zip_code: String(required=True, max_length=10)
    phone: String(max_length=30)
    country: String(max_length=100)

    @invariant.post
    def email_must_be_well_formed(self):
        if not EMAIL_PATTERN.match(self.email or ""):
            raise ValidationError({"email": ["Enter a valid email address"]})

    @invariant.post
    def zip_code_must_have_five_or_nine_digits(self):
        if not ZIP_PATTERN.match(self.zip_code or ""):
            raise ValidationError({"zip_code": ["Enter a 5- or 9-digit ZIP code"]})

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_address_string(self) -> str:
        """Single-line address, e.g. ``Jane Doe, 1 Main St, Springfield, IL 62701``."""
        parts = [self.full_name, self.address, self.city, f"{self.state} {self.zip_code}"]
        if self.country:
            parts.append(self.country)
        return ", ".join(parts)


@dataclass
class ShippingForm:
    """Mutable draft of the shipping step."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    phone: str = ""
    country: str = ""

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_user(cls, user) -> "ShippingForm":
        """Pre-fill the contact fields from the signed-in user, if any."""
        if user is None:
            return cls()
        return cls(first_name=user.first_name, last_name=user.last_name, email=user.email)

    @classmethod
    def from_saved(cls, data) -> "ShippingForm | None":
        """Rebuild a draft from saved shipping info; unusable data gives None."""
        if not isinstance(data, dict):
            return None
        values = {name: str(data[name]) for name in cls.field_names() if data.get(name) is not None}
        if not values:
            return None
        return cls(**values)

    def update(self, **changes) -> None:
        unknown = set(changes) - set(self.field_names())
        if unknown:
            raise ValidationError({name: ["Unknown shipping field"] for name in sorted(unknown)})
        for name, value in changes.items():
            setattr(self, name, "" if value is None else str(value))

    def errors(self) -> dict[str, list[str]]:
        """Every problem with the draft, keyed by field. Empty means valid."""
        errors: dict[str, list[str]] = {}
        for name in REQUIRED_FIELDS:
            if not getattr(self, name).strip():
                errors[name] = [f"{_LABELS[name]} is required"]

        email = self.email.strip()
        if email and not EMAIL_PATTERN.match(email):
            errors["email"] = ["Enter a valid email address"]

        zip_code = self.zip_code.strip()
        if zip_code and not ZIP_PATTERN.match(zip_code):
            errors["zip_code"] = ["Enter a 5- or 9-digit ZIP code"]

        return errors

    def to_shipping_info(self) -> ShippingInfo:
        """Validate the draft and freeze it. Raises ``ValidationError`` with all field errors."""
        errors = self.errors()
        if errors:
            raise ValidationError(errors)

        values = {name: value.strip() for name, value in asdict(self).items()}
        return ShippingInfo(**{name: value or None for name, value in values.items()})

    def to_dict(self) -> dict:
        return asdict(self)
