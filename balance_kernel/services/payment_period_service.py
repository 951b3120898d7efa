"""
PaymentPeriodService -- the PaymentPeriod aggregate's transactional API.

Responsibility:
    Creates, updates and deletes payment periods and adds, updates and
    removes their payment items, keeping the derived ending balance
    consistent after every change.  Exposes the period query surface by
    delegating to PaymentPeriodSelector.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses PayeeService to resolve item payees (by id, or find-or-create by
    name) inside the same savepoint as the aggregate mutation.

Invariants enforced:
    - Exactly one period per period_date.  ``exists_by_period_date`` is the
      fast-path pre-check; uq_payment_period_date is the final arbiter and
      its violation surfaces as DuplicatePeriodDateError.
    - ending_balance = starting_balance - sum(item amounts) after every
      mutating operation.  Recalculation is an explicit call right before
      each flush, never a framework hook.
    - Every item amount is in the period currency.
    - All-or-nothing: each operation runs in one SAVEPOINT.  Payees created
      along the way, replaced items and field changes are rolled back
      together when any step fails.
    - Item mutations lock the period row (SELECT ... FOR UPDATE) and re-read
      it, so separate invocations never overwrite each other's state.
    - Returns frozen DTOs, never ORM entities.

Failure modes:
    - MissingFieldError for a missing date, balance or amount.
    - PaymentPeriodNotFoundError / PaymentItemNotFoundError /
      PayeeNotFoundError for unknown ids.
    - DuplicatePeriodDateError, CurrencyMismatchError, ItemNotInPeriodError
      for conflicts.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from balance_kernel.domain.clock import Clock
from balance_kernel.domain.dtos import (
    PaymentItemData,
    PaymentItemInfo,
    PaymentPeriodInfo,
)
from balance_kernel.domain.validation import (
    has_payee_reference,
    require,
    validate_notes,
)
from balance_kernel.domain.values import Money
from balance_kernel.exceptions import (
    CurrencyMismatchError,
    DuplicatePeriodDateError,
    ItemNotInPeriodError,
    PaymentItemNotFoundError,
    PaymentPeriodNotFoundError,
)
from balance_kernel.logging_config import get_logger
from balance_kernel.models.payee import Payee
from balance_kernel.models.payment_period import PaymentItem, PaymentPeriod
from balance_kernel.selectors.payment_period_selector import PaymentPeriodSelector
from balance_kernel.services.base import BaseService, violates_constraint
from balance_kernel.services.payee_service import PayeeService

logger = get_logger("services.payment_period")

_PERIOD_DATE_CONSTRAINT = ("uq_payment_period_date", "payment_periods.period_date")


class PaymentPeriodService(BaseService[PaymentPeriod]):
    """
    Service for payment periods and their items.

    Contract:
        Every mutating method flushes within the caller's transaction,
        inside its own SAVEPOINT, and returns a DTO of the new state.

    Non-goals:
        - Does NOT order replacement item lists; the caller passes them in
          their final order (see balance_services.item_ordering).
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        payee_service: PayeeService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.payees = payee_service or PayeeService(session, self.clock)
        self.selector = PaymentPeriodSelector(session)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_model(self, period_id: UUID, for_update: bool = False) -> PaymentPeriod:
        require(period_id, "period_id")
        stmt = select(PaymentPeriod).where(PaymentPeriod.id == period_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise PaymentPeriodNotFoundError(str(period_id))
        return period

    def _get_owned_item(self, period: PaymentPeriod, item_id: UUID) -> PaymentItem:
        require(item_id, "item_id")
        item = self.session.get(PaymentItem, item_id)
        if item is None:
            raise PaymentItemNotFoundError(str(item_id))
        if item.payment_period_id != period.id:
            logger.warning(
                "payment_item_ownership_rejected",
                extra={
                    "item_id": str(item_id),
                    "period_id": str(period.id),
                    "owner_period_id": str(item.payment_period_id),
                },
            )
            raise ItemNotInPeriodError(str(item_id), str(period.id))
        return item

    def _find_id_by_date(self, period_date: date) -> UUID | None:
        stmt = select(PaymentPeriod.id).where(PaymentPeriod.period_date == period_date)
        return self.session.execute(stmt).scalar_one_or_none()

    def _ensure_date_available(
        self, period_date: date, exclude_id: UUID | None = None
    ) -> None:
        existing_id = self._find_id_by_date(period_date)
        if existing_id is not None and existing_id != exclude_id:
            logger.warning(
                "payment_period_duplicate_date",
                extra={"period_date": period_date.isoformat()},
            )
            raise DuplicatePeriodDateError(period_date.isoformat())

    def _duplicate_date(
        self, exc: IntegrityError, period_date: date
    ) -> DuplicatePeriodDateError | None:
        if not violates_constraint(exc, *_PERIOD_DATE_CONSTRAINT):
            return None
        logger.warning(
            "payment_period_duplicate_date",
            extra={"period_date": period_date.isoformat(), "detected_by": "constraint"},
        )
        return DuplicatePeriodDateError(period_date.isoformat())

    @staticmethod
    def _require_item_currencies(
        starting_balance: Money, items: Sequence[PaymentItemData]
    ) -> None:
        for data in items:
            if data.amount.currency_code != starting_balance.currency_code:
                raise CurrencyMismatchError(
                    starting_balance.currency_code, data.amount.currency_code
                )

    def _resolve_payees(self, items: Sequence[PaymentItemData]) -> list[Payee]:
        return [self.payees.resolve(data.payee_id, data.payee_name) for data in items]

    @staticmethod
    def _new_item(data: PaymentItemData, payee: Payee) -> PaymentItem:
        return PaymentItem(
            id=uuid4(),
            amount=data.amount,
            notes=data.notes,
            payee=payee,
            payee_id=payee.id,
        )

    def _finish(self, period: PaymentPeriod) -> None:
        """Recalculate, stamp and flush: the last step of every mutation."""
        period.recalculate_ending_balance()
        period.touch(self.clock.now())
        self.session.flush()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, period_id: UUID) -> PaymentPeriodInfo:
        return self.selector.get_by_id(period_id)

    def get_by_id_with_items(self, period_id: UUID) -> PaymentPeriodInfo:
        return self.selector.get_by_id_with_items(period_id)

    def find_by_period_date(
        self, period_date: date, include_items: bool = False
    ) -> PaymentPeriodInfo | None:
        return self.selector.find_by_period_date(period_date, include_items)

    def list_all(self) -> list[PaymentPeriodInfo]:
        return self.selector.list_all()

    def list_all_with_items(self) -> list[PaymentPeriodInfo]:
        return self.selector.list_all(include_items=True)

    def find_by_date_range(
        self, start_date: date, end_date: date, include_items: bool = False
    ) -> list[PaymentPeriodInfo]:
        return self.selector.find_by_date_range(start_date, end_date, include_items)

    def find_after(
        self, after: date, include_items: bool = False
    ) -> list[PaymentPeriodInfo]:
        return self.selector.find_after(after, include_items)

    def exists_by_period_date(self, period_date: date) -> bool:
        return self.selector.exists_by_period_date(period_date)

    def count_items(self, period_id: UUID) -> int:
        return self.selector.count_items(period_id)

    def search_items_by_notes(self, term: str | None) -> list[PaymentItemInfo]:
        return self.selector.search_items_by_notes(term)

    # ------------------------------------------------------------------
    # Period mutations
    # ------------------------------------------------------------------

    def create_payment_period(
        self, period_date: date, starting_balance: Money
    ) -> PaymentPeriodInfo:
        """Create a period without items; its ending balance equals the start."""
        return self.create_payment_period_with_items(period_date, starting_balance, ())

    def create_payment_period_with_items(
        self,
        period_date: date,
        starting_balance: Money,
        items: Sequence[PaymentItemData] | None,
    ) -> PaymentPeriodInfo:
        """
        Create a period and its items in one all-or-nothing step.

        Items get display orders 0, 1, 2, ... in the given order.  The
        ending balance is calculated once after all items are attached.

        Raises:
            MissingFieldError: If period_date or starting_balance is None.
            CurrencyMismatchError: If any item is not in the balance currency.
            DuplicatePeriodDateError: If the date already has a period.
            PayeeNotFoundError: If an item names an unknown payee id.
        """
        require(period_date, "period_date")
        require(starting_balance, "starting_balance")
        items = list(items or ())
        self._require_item_currencies(starting_balance, items)
        self._ensure_date_available(period_date)

        try:
            with self.atomic():
                # Payees first: their lookups autoflush, the period is not pending yet
                payees = self._resolve_payees(items)
                period = PaymentPeriod(
                    id=uuid4(),
                    period_date=period_date,
                    starting_balance=starting_balance,
                )
                for data, payee in zip(items, payees):
                    period.attach_item(self._new_item(data, payee))
                period.stamp_created(self.clock.now())
                self.session.add(period)
                self._finish(period)
        except IntegrityError as exc:
            duplicate = self._duplicate_date(exc, period_date)
            if duplicate is not None:
                raise duplicate from exc
            raise

        logger.info(
            "payment_period_created",
            extra={
                "period_id": str(period.id),
                "period_date": period_date.isoformat(),
                "starting_balance": str(period.starting_balance),
                "ending_balance": str(period.ending_balance),
                "item_count": len(items),
            },
        )
        return PaymentPeriodInfo.from_model(period, include_items=True)

    def update_payment_period(
        self,
        period_id: UUID,
        period_date: date,
        starting_balance: Money,
    ) -> PaymentPeriodInfo:
        """
        Change a period's date and starting balance, keeping its items.

        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
            DuplicatePeriodDateError: If another period has the new date.
            CurrencyMismatchError: If existing items are in another currency
                than the new starting balance.
        """
        require(period_date, "period_date")
        require(starting_balance, "starting_balance")
        period = self._get_model(period_id, for_update=True)
        for item in period.items:
            if item.amount.currency_code != starting_balance.currency_code:
                raise CurrencyMismatchError(
                    starting_balance.currency_code, item.amount.currency_code
                )
        if period_date != period.period_date:
            self._ensure_date_available(period_date, exclude_id=period.id)

        try:
            with self.atomic():
                period.period_date = period_date
                period.starting_balance = starting_balance
                self._finish(period)
        except IntegrityError as exc:
            duplicate = self._duplicate_date(exc, period_date)
            if duplicate is not None:
                raise duplicate from exc
            raise

        logger.info(
            "payment_period_updated",
            extra={
                "period_id": str(period.id),
                "period_date": period_date.isoformat(),
                "starting_balance": str(period.starting_balance),
                "ending_balance": str(period.ending_balance),
            },
        )
        return PaymentPeriodInfo.from_model(period, include_items=True)

    def update_payment_period_with_items(
        self,
        period_id: UUID,
        period_date: date,
        starting_balance: Money,
        items: Sequence[PaymentItemData] | None,
    ) -> PaymentPeriodInfo:
        """
        Replace a period's date, starting balance and ALL of its items.

        Every existing item is discarded and the given list is attached in
        order with display orders 0, 1, 2, ...  Either every part of the
        change is applied or none is.

        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
            DuplicatePeriodDateError: If another period has the new date.
            CurrencyMismatchError: If any item is not in the balance currency.
            PayeeNotFoundError: If an item names an unknown payee id.
        """
        require(period_date, "period_date")
        require(starting_balance, "starting_balance")
        items = list(items or ())
        self._require_item_currencies(starting_balance, items)
        period = self._get_model(period_id, for_update=True)
        if period_date != period.period_date:
            self._ensure_date_available(period_date, exclude_id=period.id)

        replaced = len(period.items)
        try:
            with self.atomic():
                payees = self._resolve_payees(items)
                period.period_date = period_date
                period.starting_balance = starting_balance
                period.clear_items()
                for data, payee in zip(items, payees):
                    period.attach_item(self._new_item(data, payee))
                self._finish(period)
        except IntegrityError as exc:
            duplicate = self._duplicate_date(exc, period_date)
            if duplicate is not None:
                raise duplicate from exc
            raise

        logger.info(
            "payment_period_items_replaced",
            extra={
                "period_id": str(period.id),
                "period_date": period_date.isoformat(),
                "removed_item_count": replaced,
                "item_count": len(items),
                "ending_balance": str(period.ending_balance),
            },
        )
        return PaymentPeriodInfo.from_model(period, include_items=True)

    def delete_payment_period(self, period_id: UUID) -> None:
        """
        Delete a period and all of its items.

        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
        """
        period = self._get_model(period_id, for_update=True)
        item_count = len(period.items)
        with self.atomic():
            self.session.delete(period)
            self.session.flush()

        logger.info(
            "payment_period_deleted",
            extra={"period_id": str(period_id), "item_count": item_count},
        )

    # ------------------------------------------------------------------
    # Item mutations
    # ------------------------------------------------------------------

    def add_payment_item(self, period_id: UUID, data: PaymentItemData) -> PaymentItemInfo:
        """
        Append an item to a period.

        The item's display order is the highest existing order + 1, or 0.

        Raises:
            PaymentPeriodNotFoundError: If the period doesn't exist.
            CurrencyMismatchError: If the amount is not in the period currency.
            PayeeNotFoundError: If data names an unknown payee id.
        """
        require(data, "item")
        period = self._get_model(period_id, for_update=True)
        period.require_currency(data.amount)

        with self.atomic():
            payee = self.payees.resolve(data.payee_id, data.payee_name)
            item = period.attach_item(self._new_item(data, payee))
            self._finish(period)

        logger.info(
            "payment_item_added",
            extra={
                "period_id": str(period.id),
                "item_id": str(item.id),
                "payee_id": str(payee.id),
                "amount": str(item.amount),
                "display_order": item.display_order,
                "ending_balance": str(period.ending_balance),
            },
        )
        return PaymentItemInfo.from_model(item)

    def update_payment_item(
        self,
        period_id: UUID,
        item_id: UUID,
        amount: Money | None = None,
        payee_id: UUID | None = None,
        payee_name: str | None = None,
        notes: str | None = None,
    ) -> PaymentItemInfo:
        """
        Change an item of a period.

        ``amount`` and the payee are changed only when given.  ``notes``
        replaces the stored notes wholesale; None or "" clears them.

        Raises:
            PaymentPeriodNotFoundError / PaymentItemNotFoundError: Unknown ids.
            ItemNotInPeriodError: If the item belongs to another period.
            CurrencyMismatchError: If amount is not in the period currency.
            PayeeNotFoundError: If payee_id doesn't exist.
        """
        validate_notes(notes)
        period = self._get_model(period_id, for_update=True)
        item = self._get_owned_item(period, item_id)
        if amount is not None:
            period.require_currency(amount)

        with self.atomic():
            if has_payee_reference(payee_id, payee_name):
                payee = self.payees.resolve(payee_id, payee_name)
                item.payee = payee
                item.payee_id = payee.id
            if amount is not None:
                item.amount = amount
            item.notes = notes or None
            self._finish(period)

        logger.info(
            "payment_item_updated",
            extra={
                "period_id": str(period.id),
                "item_id": str(item.id),
                "amount": str(item.amount),
                "ending_balance": str(period.ending_balance),
            },
        )
        return PaymentItemInfo.from_model(item)

    def remove_payment_item(self, period_id: UUID, item_id: UUID) -> PaymentPeriodInfo:
        """
        Remove an item from a period and delete it.

        Raises:
            PaymentPeriodNotFoundError / PaymentItemNotFoundError: Unknown ids.
            ItemNotInPeriodError: If the item belongs to another period.
        """
        period = self._get_model(period_id, for_update=True)
        item = self._get_owned_item(period, item_id)

        with self.atomic():
            period.detach_item(item)
            self._finish(period)

        logger.info(
            "payment_item_removed",
            extra={
                "period_id": str(period.id),
                "item_id": str(item_id),
                "ending_balance": str(period.ending_balance),
            },
        )
        return PaymentPeriodInfo.from_model(period, include_items=True)
