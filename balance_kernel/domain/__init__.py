"""Pure domain layer: money values, balance arithmetic, validation, DTOs."""

from balance_kernel.domain.balance import (
    calculate_ending_balance,
    next_display_order,
    total_payments,
)
from balance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from balance_kernel.domain.currency import CurrencyRegistry
from balance_kernel.domain.dtos import (
    BalanceSnapshot,
    PayeeInfo,
    PaymentItemData,
    PaymentItemInfo,
    PaymentPeriodInfo,
)
from balance_kernel.domain.values import Currency, Money

__all__ = [
    "BalanceSnapshot",
    "Clock",
    "Currency",
    "CurrencyRegistry",
    "DeterministicClock",
    "Money",
    "PayeeInfo",
    "PaymentItemData",
    "PaymentItemInfo",
    "PaymentPeriodInfo",
    "SystemClock",
    "calculate_ending_balance",
    "next_display_order",
    "total_payments",
]
