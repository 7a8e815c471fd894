"""Payment records returned to callers after a successful submission."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentReceipt:
    payment_number: str
    order_number: str


@dataclass(frozen=True)
class Payment:
    id: str | None
    order_id: str
    method: str  # CREDIT_CARD, PAYPAL
    amount: Decimal
    status: PaymentStatus
    receipt: PaymentReceipt

    @classmethod
    def from_response(cls, response, order, method: str) -> "Payment":
        status = PaymentStatus.COMPLETED
        if response.status and response.status.strip().lower() in {"failed", "declined"}:
            status = PaymentStatus.FAILED
        return cls(
            id=str(response.id) if response.id is not None else None,
            order_id=order.id,
            method=method,
            amount=order.total,
            status=status,
            receipt=PaymentReceipt(
                payment_number=response.payment_number,
                order_number=response.order_number or order.number,
            ),
        )
