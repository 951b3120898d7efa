"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    PaymentItemData (input to create/replace operations) and the read-side
    PayeeInfo, PaymentItemInfo, PaymentPeriodInfo and BalanceSnapshot.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.

Invariants enforced:
    - Services return DTOs, never ORM entities, so callers cannot mutate
      persistent state behind the service's back.
    - PaymentPeriodInfo items are ordered by display_order, then id.
    - PaymentPeriodInfo.ending_balance == starting_balance - total_payments.

Failure modes:
    - MissingFieldError on PaymentItemData without an amount.
    - MissingPayeeReferenceError on PaymentItemData without payee id or name.
    - FieldTooLongError on PaymentItemData notes over the limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from balance_kernel.domain.balance import total_payments
from balance_kernel.domain.validation import (
    require,
    require_payee_reference,
    validate_notes,
)
from balance_kernel.domain.values import Money

if TYPE_CHECKING:
    from balance_kernel.models.payee import Payee as PayeeModel
    from balance_kernel.models.payment_period import (
        PaymentItem as PaymentItemModel,
    )
    from balance_kernel.models.payment_period import (
        PaymentPeriod as PaymentPeriodModel,
    )


@dataclass(frozen=True)
class PaymentItemData:
    """
    Input for one payment item in a create or replace-all operation.

    Contract:
        ``amount`` is required. The payee is identified either by
        ``payee_id`` (must exist) or by ``payee_name`` (found or created,
        case-insensitive). When both are given, ``payee_id`` wins.
    """

    amount: Money
    payee_id: UUID | None = None
    payee_name: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        require(self.amount, "amount")
        require_payee_reference(self.payee_id, self.payee_name)
        validate_notes(self.notes)


@dataclass(frozen=True)
class PayeeInfo:
    """Immutable DTO for payee data."""

    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, payee: PayeeModel) -> PayeeInfo:
        return cls(
            id=payee.id,
            name=payee.name,
            created_at=payee.created_at,
            updated_at=payee.updated_at,
        )


@dataclass(frozen=True)
class PaymentItemInfo:
    """Immutable DTO for a payment item, with its payee resolved."""

    id: UUID
    payment_period_id: UUID
    amount: Money
    payee: PayeeInfo
    notes: str | None
    display_order: int

    @classmethod
    def from_model(cls, item: PaymentItemModel) -> PaymentItemInfo:
        return cls(
            id=item.id,
            payment_period_id=item.payment_period_id,
            amount=item.amount,
            payee=PayeeInfo.from_model(item.payee),
            notes=item.notes,
            display_order=item.display_order,
        )


@dataclass(frozen=True)
class PaymentPeriodInfo:
    """
    Immutable DTO for a payment period.

    ``items`` is None when the period was loaded without its items; the
    total is then derived from the stored balances.
    """

    id: UUID
    period_date: date
    starting_balance: Money
    ending_balance: Money | None
    total_payments: Money
    items: tuple[PaymentItemInfo, ...] | None
    created_at: datetime
    updated_at: datetime

    @property
    def currency_code(self) -> str:
        return self.starting_balance.currency_code

    @property
    def item_count(self) -> int | None:
        return None if self.items is None else len(self.items)

    @classmethod
    def from_model(
        cls,
        period: PaymentPeriodModel,
        include_items: bool = False,
    ) -> PaymentPeriodInfo:
        items: tuple[PaymentItemInfo, ...] | None = None
        if include_items:
            items = tuple(
                PaymentItemInfo.from_model(item) for item in period.ordered_items()
            )
            total = total_payments(
                period.starting_balance, (item.amount for item in items)
            )
        elif period.ending_balance is not None:
            total = period.starting_balance.subtract(period.ending_balance)
        else:
            total = Money.zero(period.starting_balance.currency)

        return cls(
            id=period.id,
            period_date=period.period_date,
            starting_balance=period.starting_balance,
            ending_balance=period.ending_balance,
            total_payments=total,
            items=items,
            created_at=period.created_at,
            updated_at=period.updated_at,
        )


@dataclass(frozen=True)
class BalanceSnapshot:
    """One row of the balance history: a period's balances at a glance."""

    period_id: UUID
    period_date: date
    starting_balance: Money
    total_payments: Money
    ending_balance: Money
