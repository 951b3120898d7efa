"""Write-side kernel services."""

from balance_kernel.services.base import BaseService
from balance_kernel.services.payee_service import PayeeService
from balance_kernel.services.payment_period_service import PaymentPeriodService

__all__ = [
    "BaseService",
    "PayeeService",
    "PaymentPeriodService",
]
