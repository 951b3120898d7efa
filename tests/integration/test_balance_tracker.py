"""
BalanceTracker end to end: every call is its own committed transaction.

These tests use real commits against the test database; the tracker
fixture deletes every row afterwards.
"""

from datetime import date

import pytest

from balance_kernel.db.engine import get_session_factory
from balance_kernel.domain.dtos import PaymentItemData
from balance_kernel.domain.values import Money
from balance_kernel.exceptions import (
    CurrencyMismatchError,
    DuplicatePeriodDateError,
    PayeeReferencedError,
    PaymentPeriodNotFoundError,
    TransactionAbortedError,
)
from balance_kernel.logging_config import LogContext
from balance_kernel.services.payment_period_service import PaymentPeriodService
from balance_services.item_ordering import ReplacementEntry
from balance_services.tracker import BalanceTracker

JAN = date(2024, 1, 1)
FEB = date(2024, 2, 1)


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def item(amount: str, payee: str, notes: str | None = None) -> PaymentItemData:
    return PaymentItemData(usd(amount), payee_name=payee, notes=notes)


class TestPeriodLifecycle:

    def test_example_period_survives_reload(self, tracker):
        created = tracker.create_period(JAN, usd("1000.00"))
        tracker.add_item(created.id, item("250.00", "Landlord"))
        tracker.add_item(created.id, item("75.50", "Electric"))

        reloaded = tracker.get_period_with_items(created.id)
        assert reloaded.ending_balance == usd("674.50")
        assert reloaded.total_payments == usd("325.50")
        assert [i.payee.name for i in reloaded.items] == ["Landlord", "Electric"]
        assert tracker.count_items(created.id) == 2

    def test_get_by_date_and_exists(self, tracker):
        created = tracker.create_period(JAN, usd("1.00"))
        assert tracker.period_exists(JAN)
        assert tracker.get_period_by_date(JAN).id == created.id
        assert tracker.get_period_by_date(FEB) is None

    def test_duplicate_date_is_not_retried(self, tracker, captured_logs):
        tracker.create_period(JAN, usd("1.00"))
        with pytest.raises(DuplicatePeriodDateError):
            tracker.create_period(JAN, usd("2.00"))
        assert not any(r["message"] == "retry_scheduled" for r in captured_logs())
        assert len(tracker.list_periods()) == 1

    def test_rejected_change_is_not_committed(self, tracker):
        created = tracker.create_period_with_items(JAN, usd("1000.00"), [item("250.00", "A")])
        with pytest.raises(CurrencyMismatchError):
            tracker.add_item(
                created.id, PaymentItemData(Money.of("1.00", "EUR"), payee_name="B")
            )
        after = tracker.get_period_with_items(created.id)
        assert after.ending_balance == usd("750.00")
        assert after.item_count == 1

    def test_update_period_from_form_orders_rows(self, tracker):
        created = tracker.create_period_with_items(
            JAN, usd("1000.00"), [item("1.00", "A"), item("2.00", "B"), item("3.00", "C")]
        )
        updated = tracker.update_period_from_form(
            created.id,
            JAN,
            usd("1000.00"),
            [
                ReplacementEntry(item("4.00", "New"), None),
                ReplacementEntry(item("3.00", "C"), 2),
                ReplacementEntry(item("1.00", "A"), 0),
            ],
        )
        assert [i.payee.name for i in updated.items] == ["A", "C", "New"]
        assert [i.display_order for i in updated.items] == [0, 1, 2]
        assert updated.ending_balance == usd("992.00")

    def test_delete_period(self, tracker):
        created = tracker.create_period_with_items(JAN, usd("10.00"), [item("1.00", "A")])
        tracker.delete_period(created.id)
        with pytest.raises(PaymentPeriodNotFoundError):
            tracker.get_period(created.id)

    def test_ranges_and_history(self, tracker):
        tracker.create_period(FEB, usd("20.00"))
        tracker.create_period(JAN, usd("10.00"))
        assert [p.period_date for p in tracker.list_periods_in_range(JAN, FEB)] == [FEB, JAN]
        assert [p.period_date for p in tracker.list_periods_after(JAN)] == [FEB]
        assert [s.period_date for s in tracker.balance_history()] == [JAN, FEB]

    def test_search_items(self, tracker):
        created = tracker.create_period(JAN, usd("10.00"))
        tracker.add_item(created.id, item("1.00", "A", notes="Water bill"))
        found = tracker.search_items("water")
        assert [i.notes for i in found] == ["Water bill"]


class TestPayees:

    def test_payee_registry(self, tracker):
        acme = tracker.create_payee("Acme")
        assert tracker.find_or_create_payee("ACME").id == acme.id
        assert tracker.get_payee_by_name("acme").id == acme.id
        assert tracker.update_payee(acme.id, "Acme Inc").name == "Acme Inc"
        assert [p.name for p in tracker.search_payees("inc")] == ["Acme Inc"]
        tracker.delete_payee(acme.id)
        assert tracker.list_payees() == []

    def test_referenced_payee_survives(self, tracker):
        created = tracker.create_period_with_items(JAN, usd("10.00"), [item("1.00", "Landlord")])
        payee_id = created.items[0].payee.id
        with pytest.raises(PayeeReferencedError):
            tracker.delete_payee(payee_id)
        assert tracker.get_payee(payee_id).name == "Landlord"


class TestRetryAndContext:

    def test_transient_failure_is_retried(self, monkeypatch, tracker):
        sleeps: list[float] = []
        retrying = BalanceTracker(
            get_session_factory(), max_attempts=3, backoff_seconds=0.25, sleep=sleeps.append
        )
        original = PaymentPeriodService.create_payment_period
        failures = [TransactionAbortedError("deadlock detected")]

        def flaky(self, period_date, starting_balance):
            if failures:
                raise failures.pop()
            return original(self, period_date, starting_balance)

        monkeypatch.setattr(PaymentPeriodService, "create_payment_period", flaky)
        created = retrying.create_period(JAN, usd("1.00"))
        assert sleeps == [0.25]
        assert retrying.get_period(created.id).starting_balance == usd("1.00")

    def test_exhausted_retries_raise(self, monkeypatch, tracker):
        def always_fail(self, period_date, starting_balance):
            raise TransactionAbortedError("deadlock detected")

        monkeypatch.setattr(PaymentPeriodService, "create_payment_period", always_fail)
        with pytest.raises(TransactionAbortedError):
            tracker.create_period(JAN, usd("1.00"))

    def test_operations_carry_a_correlation_id(self, tracker, captured_logs):
        tracker.create_period(JAN, usd("1.00"))
        created = [r for r in captured_logs() if r["message"] == "payment_period_created"]
        assert created[0]["correlation_id"]

    def test_caller_correlation_id_is_kept(self, tracker, captured_logs):
        with LogContext.bind(correlation_id="req-42"):
            tracker.create_period(JAN, usd("1.00"))
        created = [r for r in captured_logs() if r["message"] == "payment_period_created"]
        assert created[0]["correlation_id"] == "req-42"

    def test_period_operations_carry_the_period_id(self, tracker, captured_logs):
        period = tracker.create_period(JAN, usd("100.00"))
        tracker.add_item(period.id, item("10.00", "Landlord"))
        committed = [r for r in captured_logs() if r["message"] == "transaction_committed"]
        assert "period_id" not in committed[0]
        assert committed[-1]["period_id"] == str(period.id)
        assert "period_id" not in LogContext.get_all()

    def test_payee_operations_carry_the_payee_id(self, tracker, captured_logs):
        payee = tracker.create_payee("Acme")
        tracker.update_payee(payee.id, "Acme Corp")
        committed = [r for r in captured_logs() if r["message"] == "transaction_committed"]
        assert committed[-1]["payee_id"] == str(payee.id)
        assert "payee_id" not in LogContext.get_all()
