"""Read-side queries over payment periods and items."""

from datetime import date
from uuid import uuid4

import pytest

from balance_kernel.domain.dtos import PaymentItemData
from balance_kernel.domain.values import Money
from balance_kernel.exceptions import InvalidDateRangeError, PaymentPeriodNotFoundError

JAN = date(2024, 1, 1)
FEB = date(2024, 2, 1)
MAR = date(2024, 3, 1)


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def item(amount: str, payee: str, notes: str | None = None) -> PaymentItemData:
    return PaymentItemData(usd(amount), payee_name=payee, notes=notes)


@pytest.fixture
def three_periods(period_service):
    """Periods created out of date order."""
    feb = period_service.create_payment_period_with_items(
        FEB, usd("500.00"), [item("100.00", "Landlord", notes="February rent")]
    )
    jan = period_service.create_payment_period_with_items(
        JAN,
        usd("1000.00"),
        [item("250.00", "Landlord", notes="January RENT"), item("75.50", "Electric")],
    )
    mar = period_service.create_payment_period(MAR, usd("300.00"))
    return jan, feb, mar


class TestLookups:

    def test_get_by_id_without_items(self, period_selector, three_periods):
        jan, _, _ = three_periods
        info = period_selector.get_by_id(jan.id)
        assert info.items is None
        assert info.item_count is None
        assert info.ending_balance == usd("674.50")
        assert info.total_payments == usd("325.50")

    def test_get_by_id_with_items(self, period_selector, three_periods):
        jan, _, _ = three_periods
        info = period_selector.get_by_id_with_items(jan.id)
        assert [i.payee.name for i in info.items] == ["Landlord", "Electric"]
        assert info.item_count == 2

    def test_unknown_id(self, period_selector):
        with pytest.raises(PaymentPeriodNotFoundError):
            period_selector.get_by_id(uuid4())
        with pytest.raises(PaymentPeriodNotFoundError):
            period_selector.get_by_id_with_items(uuid4())
        assert period_selector.find_by_id(uuid4()) is None

    def test_find_by_period_date(self, period_selector, three_periods):
        _, feb, _ = three_periods
        assert period_selector.find_by_period_date(FEB).id == feb.id
        assert period_selector.find_by_period_date(date(2030, 1, 1)) is None

    def test_exists_by_period_date(self, period_selector, three_periods):
        assert period_selector.exists_by_period_date(JAN)
        assert not period_selector.exists_by_period_date(date(2023, 12, 1))


class TestLists:

    def test_list_all_newest_first(self, period_selector, three_periods):
        assert [p.period_date for p in period_selector.list_all()] == [MAR, FEB, JAN]

    def test_list_all_with_items(self, period_selector, three_periods):
        periods = period_selector.list_all(include_items=True)
        assert [p.item_count for p in periods] == [0, 1, 2]

    def test_date_range_inclusive(self, period_selector, three_periods):
        periods = period_selector.find_by_date_range(JAN, FEB)
        assert [p.period_date for p in periods] == [FEB, JAN]

    def test_date_range_single_day(self, period_selector, three_periods):
        assert len(period_selector.find_by_date_range(MAR, MAR)) == 1

    def test_date_range_inverted(self, period_selector):
        with pytest.raises(InvalidDateRangeError):
            period_selector.find_by_date_range(MAR, JAN)

    def test_find_after_is_strict(self, period_selector, three_periods):
        assert [p.period_date for p in period_selector.find_after(JAN)] == [MAR, FEB]
        assert period_selector.find_after(MAR) == []

    def test_empty_store(self, period_selector):
        assert period_selector.list_all() == []
        assert period_selector.balance_history() == []


class TestItems:

    def test_count_items(self, period_selector, three_periods):
        jan, feb, mar = three_periods
        assert period_selector.count_items(jan.id) == 2
        assert period_selector.count_items(feb.id) == 1
        assert period_selector.count_items(mar.id) == 0

    def test_count_items_unknown_period(self, period_selector):
        with pytest.raises(PaymentPeriodNotFoundError):
            period_selector.count_items(uuid4())

    def test_search_notes_case_insensitive_newest_first(self, period_selector, three_periods):
        found = period_selector.search_items_by_notes("rent")
        assert [i.notes for i in found] == ["February rent", "January RENT"]

    def test_search_notes_blank_term(self, period_selector, three_periods):
        assert period_selector.search_items_by_notes("  ") == []
        assert period_selector.search_items_by_notes(None) == []

    def test_search_notes_no_match(self, period_selector, three_periods):
        assert period_selector.search_items_by_notes("groceries") == []


class TestBalanceHistory:

    def test_oldest_first_with_derived_totals(self, period_selector, three_periods):
        history = period_selector.balance_history()
        assert [s.period_date for s in history] == [JAN, FEB, MAR]
        jan, feb, mar = history
        assert (jan.starting_balance, jan.total_payments, jan.ending_balance) == (
            usd("1000.00"),
            usd("325.50"),
            usd("674.50"),
        )
        assert feb.ending_balance == usd("400.00")
        assert mar.total_payments.is_zero
        assert mar.ending_balance == usd("300.00")

    def test_identity_holds_for_every_snapshot(self, period_selector, three_periods):
        for snapshot in period_selector.balance_history():
            assert snapshot.ending_balance == snapshot.starting_balance - snapshot.total_payments
