"""
PaymentPeriodSelector -- read-side queries over periods and items.

Responsibility:
    Lists and looks up payment periods (with or without their items),
    counts and searches items, and builds the balance history read model.

Architecture position:
    Kernel > Selectors -- read-only, returns DTOs.

Invariants enforced:
    - Period lists are ordered by period_date descending; items inside a
      period by display_order, then id.
    - Date ranges are inclusive and validated (start <= end).
    - balance_history() is ordered by period_date ascending and reports
      ending = starting - total for every period.

Failure modes:
    - PaymentPeriodNotFoundError from get_by_id / get_by_id_with_items.
    - InvalidDateRangeError when start > end.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from balance_kernel.domain.dtos import (
    BalanceSnapshot,
    PaymentItemInfo,
    PaymentPeriodInfo,
)
from balance_kernel.domain.validation import require, validate_date_range
from balance_kernel.exceptions import PaymentPeriodNotFoundError
from balance_kernel.models.payment_period import PaymentItem, PaymentPeriod
from balance_kernel.selectors.base import BaseSelector


class PaymentPeriodSelector(BaseSelector[PaymentPeriod]):
    """Read-only queries for payment periods and their items."""

    def _select(self, include_items: bool):
        stmt = select(PaymentPeriod)
        if include_items:
            stmt = stmt.options(selectinload(PaymentPeriod.items))
        return stmt

    def _to_dtos(self, stmt, include_items: bool) -> list[PaymentPeriodInfo]:
        periods = self.session.execute(stmt).scalars().all()
        return [PaymentPeriodInfo.from_model(p, include_items) for p in periods]

    def find_by_id(
        self, period_id: UUID, include_items: bool = False
    ) -> PaymentPeriodInfo | None:
        stmt = self._select(include_items).where(PaymentPeriod.id == period_id)
        period = self.session.execute(stmt).scalar_one_or_none()
        return PaymentPeriodInfo.from_model(period, include_items) if period else None

    def get_by_id(self, period_id: UUID) -> PaymentPeriodInfo:
        """
        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
        """
        require(period_id, "period_id")
        info = self.find_by_id(period_id)
        if info is None:
            raise PaymentPeriodNotFoundError(str(period_id))
        return info

    def get_by_id_with_items(self, period_id: UUID) -> PaymentPeriodInfo:
        """
        Period with its items in display order.

        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
        """
        require(period_id, "period_id")
        info = self.find_by_id(period_id, include_items=True)
        if info is None:
            raise PaymentPeriodNotFoundError(str(period_id))
        return info

    def find_by_period_date(
        self, period_date: date, include_items: bool = False
    ) -> PaymentPeriodInfo | None:
        require(period_date, "period_date")
        stmt = self._select(include_items).where(PaymentPeriod.period_date == period_date)
        period = self.session.execute(stmt).scalar_one_or_none()
        return PaymentPeriodInfo.from_model(period, include_items) if period else None

    def exists_by_period_date(self, period_date: date) -> bool:
        require(period_date, "period_date")
        stmt = select(PaymentPeriod.id).where(PaymentPeriod.period_date == period_date)
        return self.session.execute(stmt).first() is not None

    def list_all(self, include_items: bool = False) -> list[PaymentPeriodInfo]:
        """All periods, newest period_date first."""
        stmt = self._select(include_items).order_by(PaymentPeriod.period_date.desc())
        return self._to_dtos(stmt, include_items)

    def find_by_date_range(
        self,
        start_date: date,
        end_date: date,
        include_items: bool = False,
    ) -> list[PaymentPeriodInfo]:
        """
        Periods with start_date <= period_date <= end_date, newest first.

        Raises:
            InvalidDateRangeError: If start_date > end_date.
        """
        validate_date_range(start_date, end_date)
        stmt = (
            self._select(include_items)
            .where(PaymentPeriod.period_date.between(start_date, end_date))
            .order_by(PaymentPeriod.period_date.desc())
        )
        return self._to_dtos(stmt, include_items)

    def find_after(
        self, after: date, include_items: bool = False
    ) -> list[PaymentPeriodInfo]:
        """Periods strictly after the given date, newest first."""
        require(after, "after")
        stmt = (
            self._select(include_items)
            .where(PaymentPeriod.period_date > after)
            .order_by(PaymentPeriod.period_date.desc())
        )
        return self._to_dtos(stmt, include_items)

    def count_items(self, period_id: UUID) -> int:
        """
        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
        """
        if self.session.get(PaymentPeriod, period_id) is None:
            raise PaymentPeriodNotFoundError(str(period_id))
        stmt = select(func.count(PaymentItem.id)).where(
            PaymentItem.payment_period_id == period_id
        )
        return self.session.execute(stmt).scalar_one()

    def search_items_by_notes(self, term: str | None) -> list[PaymentItemInfo]:
        """
        Items whose notes contain the term, ignoring case.

        Ordered by period_date descending, then display order.  A blank
        term matches nothing.
        """
        if term is None or not term.strip():
            return []
        stmt = (
            select(PaymentItem)
            .join(PaymentPeriod, PaymentItem.payment_period_id == PaymentPeriod.id)
            .where(
                func.lower(PaymentItem.notes).contains(
                    term.strip().lower(), autoescape=True
                )
            )
            .order_by(
                PaymentPeriod.period_date.desc(),
                PaymentItem.display_order,
                PaymentItem.id,
            )
        )
        items = self.session.execute(stmt).scalars().unique().all()
        return [PaymentItemInfo.from_model(item) for item in items]

    def balance_history(self) -> list[BalanceSnapshot]:
        """
        One snapshot per period, oldest first.

        Periods whose ending balance has never been calculated report the
        starting balance as ending balance and a zero total.
        """
        stmt = select(PaymentPeriod).order_by(PaymentPeriod.period_date)
        snapshots = []
        for period in self.session.execute(stmt).scalars():
            info = PaymentPeriodInfo.from_model(period)
            snapshots.append(
                BalanceSnapshot(
                    period_id=info.id,
                    period_date=info.period_date,
                    starting_balance=info.starting_balance,
                    total_payments=info.total_payments,
                    ending_balance=info.ending_balance or info.starting_balance,
                )
            )
        return snapshots
