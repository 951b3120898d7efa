"""
BalanceTracker -- composition root for external collaborators.

Responsibility:
    The single object a web handler, API endpoint or CLI needs.  Every
    public method runs one kernel operation in its own transaction
    (``session_scope``), retries transient infrastructure failures a
    bounded number of times, and returns the kernel's frozen DTOs.

Architecture position:
    Services -- orchestration over ``balance_kernel``.  Wires
    ``PayeeService``, ``PaymentPeriodService`` and the settings from
    ``balance_config``.  The kernel never imports this package.

Invariants enforced:
    - One call, one transaction: nothing is cached across calls; every
      operation re-reads current state from the store.
    - Only transient ``InfrastructureError`` is retried; domain errors
      propagate on the first attempt.
    - Every call runs with a fresh ``correlation_id`` in the log context
      unless the caller already bound one.

Failure modes:
    - Any BalanceKernelError from the kernel, unchanged.
    - InfrastructureError once retries are exhausted.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from balance_config.schema import TrackerSettings
from balance_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from balance_kernel.domain.clock import Clock, SystemClock
from balance_kernel.domain.dtos import (
    BalanceSnapshot,
    PayeeInfo,
    PaymentItemData,
    PaymentItemInfo,
    PaymentPeriodInfo,
)
from balance_kernel.domain.values import Money
from balance_kernel.logging_config import LogContext, configure_logging, get_logger
from balance_kernel.services.payee_service import PayeeService
from balance_kernel.services.payment_period_service import PaymentPeriodService
from balance_services.item_ordering import ReplacementEntry, order_replacement_items
from balance_services.retry import run_with_retry

logger = get_logger("services.tracker")

T = TypeVar("T")


class BalanceTracker:
    """
    Transactional facade over the payee registry and payment periods.

    Usage:
        tracker = BalanceTracker.from_settings(get_active_settings())
        period = tracker.create_period(date(2024, 1, 1), Money.of("1000.00", "USD"))
        tracker.add_item(period.id, PaymentItemData(Money.of("250.00", "USD"),
                                                    payee_name="Rent"))
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: TrackerSettings,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> BalanceTracker:
        """Configure logging and the engine from settings and build a tracker."""
        configure_logging(level=settings.logging.level_number)
        db = settings.database
        engine = init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
        if create_schema:
            create_tables(engine)
        return cls(
            get_session_factory(),
            clock=clock,
            max_attempts=settings.retry.max_attempts,
            backoff_seconds=settings.retry.backoff_seconds,
        )

    def _run(
        self,
        operation_name: str,
        work: Callable[[PaymentPeriodService, PayeeService], T],
        *,
        period_id: UUID | None = None,
        payee_id: UUID | None = None,
    ) -> T:
        def attempt() -> T:
            with session_scope(self._session_factory) as session:
                payees = PayeeService(session, self._clock)
                periods = PaymentPeriodService(session, payees, self._clock)
                return work(periods, payees)

        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id, period_id=period_id, payee_id=payee_id
        ):
            return run_with_retry(
                attempt,
                max_attempts=self._max_attempts,
                backoff_seconds=self._backoff_seconds,
                operation_name=operation_name,
                sleep=self._sleep,
            )

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def create_period(self, period_date: date, starting_balance: Money) -> PaymentPeriodInfo:
        return self._run(
            "create_period",
            lambda periods, _: periods.create_payment_period(period_date, starting_balance),
        )

    def create_period_with_items(
        self,
        period_date: date,
        starting_balance: Money,
        items: Sequence[PaymentItemData],
    ) -> PaymentPeriodInfo:
        return self._run(
            "create_period_with_items",
            lambda periods, _: periods.create_payment_period_with_items(
                period_date, starting_balance, items
            ),
        )

    def get_period(self, period_id: UUID) -> PaymentPeriodInfo:
        return self._run("get_period", lambda periods, _: periods.get_by_id(period_id), period_id=period_id)

    def get_period_with_items(self, period_id: UUID) -> PaymentPeriodInfo:
        return self._run(
            "get_period_with_items",
            lambda periods, _: periods.get_by_id_with_items(period_id),
            period_id=period_id,
        )

    def get_period_by_date(
        self, period_date: date, include_items: bool = False
    ) -> PaymentPeriodInfo | None:
        return self._run(
            "get_period_by_date",
            lambda periods, _: periods.find_by_period_date(period_date, include_items),
        )

    def list_periods(self, include_items: bool = False) -> list[PaymentPeriodInfo]:
        if include_items:
            return self._run("list_periods", lambda periods, _: periods.list_all_with_items())
        return self._run("list_periods", lambda periods, _: periods.list_all())

    def list_periods_in_range(
        self, start_date: date, end_date: date, include_items: bool = False
    ) -> list[PaymentPeriodInfo]:
        return self._run(
            "list_periods_in_range",
            lambda periods, _: periods.find_by_date_range(start_date, end_date, include_items),
        )

    def list_periods_after(self, after: date) -> list[PaymentPeriodInfo]:
        return self._run("list_periods_after", lambda periods, _: periods.find_after(after))

    def period_exists(self, period_date: date) -> bool:
        return self._run(
            "period_exists", lambda periods, _: periods.exists_by_period_date(period_date)
        )

    def update_period(
        self, period_id: UUID, period_date: date, starting_balance: Money
    ) -> PaymentPeriodInfo:
        return self._run(
            "update_period",
            lambda periods, _: periods.update_payment_period(
                period_id, period_date, starting_balance
            ),
            period_id=period_id,
        )

    def update_period_with_items(
        self,
        period_id: UUID,
        period_date: date,
        starting_balance: Money,
        items: Sequence[PaymentItemData],
    ) -> PaymentPeriodInfo:
        return self._run(
            "update_period_with_items",
            lambda periods, _: periods.update_payment_period_with_items(
                period_id, period_date, starting_balance, items
            ),
            period_id=period_id,
        )

    def update_period_from_form(
        self,
        period_id: UUID,
        period_date: date,
        starting_balance: Money,
        entries: Iterable[ReplacementEntry],
    ) -> PaymentPeriodInfo:
        """Whole-period update from posted form rows, ordered by original index."""
        items = order_replacement_items(entries)
        return self.update_period_with_items(period_id, period_date, starting_balance, items)

    def delete_period(self, period_id: UUID) -> None:
        self._run(
            "delete_period",
            lambda periods, _: periods.delete_payment_period(period_id),
            period_id=period_id,
        )

    def balance_history(self) -> list[BalanceSnapshot]:
        return self._run(
            "balance_history", lambda periods, _: periods.selector.balance_history()
        )

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, period_id: UUID, item: PaymentItemData) -> PaymentItemInfo:
        return self._run(
            "add_item",
            lambda periods, _: periods.add_payment_item(period_id, item),
            period_id=period_id,
        )

    def update_item(
        self,
        period_id: UUID,
        item_id: UUID,
        amount: Money | None = None,
        payee_id: UUID | None = None,
        payee_name: str | None = None,
        notes: str | None = None,
    ) -> PaymentItemInfo:
        return self._run(
            "update_item",
            lambda periods, _: periods.update_payment_item(
                period_id, item_id, amount, payee_id, payee_name, notes
            ),
            period_id=period_id,
            payee_id=payee_id,
        )

    def remove_item(self, period_id: UUID, item_id: UUID) -> PaymentPeriodInfo:
        return self._run(
            "remove_item",
            lambda periods, _: periods.remove_payment_item(period_id, item_id),
            period_id=period_id,
        )

    def count_items(self, period_id: UUID) -> int:
        return self._run(
            "count_items", lambda periods, _: periods.count_items(period_id), period_id=period_id
        )

    def search_items(self, term: str) -> list[PaymentItemInfo]:
        return self._run(
            "search_items", lambda periods, _: periods.search_items_by_notes(term)
        )

    # ------------------------------------------------------------------
    # Payees
    # ------------------------------------------------------------------

    def create_payee(self, name: str) -> PayeeInfo:
        return self._run("create_payee", lambda _, payees: payees.create_payee(name))

    def find_or_create_payee(self, name: str) -> PayeeInfo:
        return self._run(
            "find_or_create_payee", lambda _, payees: payees.find_or_create_payee(name)
        )

    def get_payee(self, payee_id: UUID) -> PayeeInfo:
        return self._run(
            "get_payee", lambda _, payees: payees.get_by_id(payee_id), payee_id=payee_id
        )

    def get_payee_by_name(self, name: str) -> PayeeInfo:
        return self._run("get_payee_by_name", lambda _, payees: payees.get_by_name(name))

    def list_payees(self) -> list[PayeeInfo]:
        return self._run("list_payees", lambda _, payees: payees.list_all())

    def search_payees(self, term: str | None) -> list[PayeeInfo]:
        return self._run("search_payees", lambda _, payees: payees.search_by_name(term))

    def update_payee(self, payee_id: UUID, name: str) -> PayeeInfo:
        return self._run(
            "update_payee",
            lambda _, payees: payees.update_payee(payee_id, name),
            payee_id=payee_id,
        )

    def delete_payee(self, payee_id: UUID) -> None:
        self._run(
            "delete_payee", lambda _, payees: payees.delete_payee(payee_id), payee_id=payee_id
        )
