"""Read-only query selectors."""

from balance_kernel.selectors.base import BaseSelector
from balance_kernel.selectors.payment_period_selector import PaymentPeriodSelector

__all__ = [
    "BaseSelector",
    "PaymentPeriodSelector",
]
