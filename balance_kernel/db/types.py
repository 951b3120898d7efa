"""
Module: balance_kernel.db.types
Responsibility: Column types that carry domain values through the database:
    the single-field money codec and timezone-preserving timestamps.
Architecture position: Kernel > DB.  May import from domain/values.py only.

Invariants enforced:
    - A Money value is stored as exactly one text field "<decimal>|<currency>"
      (e.g. "100.50|USD").  Loading reproduces the original decimal precision
      and currency exactly.
    - A malformed stored value is a hard error on load (MoneyParseError),
      never a defaulted zero.
    - Timestamps are normalized to UTC on write and come back timezone-aware
      on every backend, including SQLite which stores them naive.

Failure modes:
    - MoneyParseError when a stored money field has the wrong number of
      fields, a non-numeric amount or an unknown currency code.
    - TypeError when something other than Money is bound to a money column.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator

from balance_kernel.domain.values import Money

# Generous enough for any Decimal the application produces plus "|XXX"
MONEY_COLUMN_LENGTH = 64


class MoneyString(TypeDecorator):
    """
    Money stored as "<decimal>|<currency>" text.

    Guarantees:
        - process_bind_param: Money -> Money.serialize() on INSERT/UPDATE.
        - process_result_value: text -> Money.parse() on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(MONEY_COLUMN_LENGTH)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Money):
            raise TypeError(f"Money column expects Money, got {type(value).__name__}")
        return value.serialize()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Money.parse(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that is always returned in UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime is not allowed: {value!r}")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
