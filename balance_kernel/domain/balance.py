"""
Balance -- pure balance arithmetic for payment periods.

Responsibility:
    Computes total payments and the derived ending balance of a payment
    period, and the display order for a newly attached item.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O. The ORM aggregate
    (models.payment_period) and the DTO layer both delegate here so the
    formula exists exactly once.

Invariants enforced:
    - ending_balance = starting_balance - sum(item amounts)
    - Every amount folded must be in the starting balance currency; a
      mismatch raises CurrencyMismatchError from Money.subtract.
    - Items without an amount are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable

from balance_kernel.domain.values import Money


def total_payments(currency_source: Money, amounts: Iterable[Money | None]) -> Money:
    """Sum of item amounts, zero in the period currency when there are none."""
    total = Money.zero(currency_source.currency)
    for amount in amounts:
        if amount is not None:
            total = total.add(amount)
    return total


def calculate_ending_balance(
    starting_balance: Money | None,
    amounts: Iterable[Money | None],
) -> Money | None:
    """
    Fold subtraction of each amount from the starting balance.

    Postconditions:
        - Returns None iff starting_balance is None.
        - Otherwise returns starting_balance minus every non-None amount.
    """
    if starting_balance is None:
        return None
    balance = starting_balance
    for amount in amounts:
        if amount is not None:
            balance = balance.subtract(amount)
    return balance


def next_display_order(existing_orders: Iterable[int | None]) -> int:
    """Max existing display order + 1, or 0 when no item has an order yet."""
    orders = [order for order in existing_orders if order is not None]
    return max(orders) + 1 if orders else 0
