"""ORM models for the balance kernel."""

from balance_kernel.models.payee import Payee
from balance_kernel.models.payment_period import PaymentItem, PaymentPeriod

__all__ = [
    "Payee",
    "PaymentItem",
    "PaymentPeriod",
]
