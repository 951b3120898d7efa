"""
Module: balance_kernel.models.payment_period
Responsibility: ORM persistence for the PaymentPeriod aggregate and its
    PaymentItem children, plus the aggregate's own mutation methods (attach,
    detach, recalculate).
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - Exactly one period per period_date (uq_payment_period_date).
    - ending_balance = starting_balance - sum(item amounts).  The aggregate
      never recalculates implicitly; services call recalculate_ending_balance()
      after every structural change and before every flush.
    - Every item amount is in the starting balance currency (require_currency).
    - Items are owned by exactly one period.  Each item stores only its
      payment_period_id; ``PaymentPeriod.items`` is the derived index and has
      no back-pointer.  Deleting a period deletes its items; detaching an
      item from ``items`` deletes the item (delete-orphan).
    - display_order is NOT NULL: every item is ordered when it is attached.

Failure modes:
    - CurrencyMismatchError when an item amount or a new starting balance
      disagrees with the period currency.
    - IntegrityError on duplicate period_date (translated by the service).
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from balance_kernel.db.base import Base, TrackedBase, UUIDString
from balance_kernel.domain.balance import (
    calculate_ending_balance,
    next_display_order,
    total_payments,
)
from balance_kernel.domain.validation import NOTES_MAX_LENGTH
from balance_kernel.domain.values import Money
from balance_kernel.exceptions import CurrencyMismatchError
from balance_kernel.models.payee import Payee


class PaymentPeriod(TrackedBase):
    """
    A billing cycle: starting balance, payment items, derived ending balance.

    Guarantees:
        - period_date is unique across all periods.
        - ordered_items() returns items by (display_order, id).
        - ending_balance is None only before the first recalculation.
    """

    __tablename__ = "payment_periods"

    __table_args__ = (
        UniqueConstraint("period_date", name="uq_payment_period_date"),
    )

    period_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    starting_balance: Mapped[Money] = mapped_column(
        nullable=False,
    )

    # Derived; see recalculate_ending_balance()
    ending_balance: Mapped[Money | None] = mapped_column(
        nullable=True,
    )

    items: Mapped[list[PaymentItem]] = relationship(
        cascade="all, delete-orphan",
        order_by=lambda: (PaymentItem.display_order, PaymentItem.id),
    )

    def __repr__(self) -> str:
        return f"<PaymentPeriod {self.period_date.isoformat()}>"

    @property
    def currency_code(self) -> str:
        return self.starting_balance.currency_code

    @property
    def total_payments(self) -> Money:
        return total_payments(
            self.starting_balance, (item.amount for item in self.items)
        )

    def ordered_items(self) -> list[PaymentItem]:
        """Items by display_order, then id."""
        return sorted(self.items, key=lambda item: (item.display_order, str(item.id)))

    def require_currency(self, amount: Money) -> None:
        """Raise CurrencyMismatchError unless amount is in the period currency."""
        if amount.currency_code != self.currency_code:
            raise CurrencyMismatchError(self.currency_code, amount.currency_code)

    def next_display_order(self) -> int:
        return next_display_order(item.display_order for item in self.items)

    def attach_item(self, item: PaymentItem) -> PaymentItem:
        """
        Append an item at the end of the display order.

        Preconditions: item.amount is in the period currency (checked).
        Postconditions: item.display_order is max existing + 1, or 0.
            The ending balance is NOT recalculated here.
        """
        self.require_currency(item.amount)
        item.display_order = self.next_display_order()
        self.items.append(item)
        return item

    def detach_item(self, item: PaymentItem) -> None:
        """Remove an item from the period; the item row is deleted on flush."""
        self.items.remove(item)

    def clear_items(self) -> None:
        self.items.clear()

    def recalculate_ending_balance(self) -> Money | None:
        """Fold every item amount out of the starting balance."""
        self.ending_balance = calculate_ending_balance(
            self.starting_balance, (item.amount for item in self.items)
        )
        return self.ending_balance


class PaymentItem(Base):
    """
    One payment against a payee, owned by exactly one PaymentPeriod.

    Contract:
        Created, changed and removed only through PaymentPeriodService.
    """

    __tablename__ = "payment_items"

    __table_args__ = (
        Index("idx_payment_item_period_order", "payment_period_id", "display_order"),
        Index("idx_payment_item_payee", "payee_id"),
    )

    payment_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payment_periods.id", ondelete="CASCADE"),
        nullable=False,
    )

    payee_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payees.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        String(NOTES_MAX_LENGTH),
        nullable=True,
    )

    display_order: Mapped[int] = mapped_column(
        nullable=False,
    )

    payee: Mapped[Payee] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<PaymentItem {self.amount} order={self.display_order}>"
