"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides Currency and Money, the only representation of monetary values
    in the kernel, plus the single-field storage codec
    ``"<decimal>|<currency>"`` used by the persistence layer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module. No outward dependencies except
    balance_kernel.domain.currency and balance_kernel.exceptions.

Invariants enforced:
    - Amounts are always Decimal, never float.
    - Currency codes are validated against ISO 4217 at construction time.
    - Arithmetic between two Money values requires equal currencies; a
      mismatch raises CurrencyMismatchError and is never coerced.
    - Serialization round-trips exactly: the decimal string keeps its
      precision ("100.50" stays "100.50") and the currency code is kept.

Failure modes:
    - InvalidCurrencyError on construction with an unknown currency code.
    - ValidationError on construction with a non-numeric or non-finite amount.
    - CurrencyMismatchError when add/subtract mixes currencies.
    - MoneyParseError when a stored value has the wrong field count, a
      non-numeric amount or an unknown currency code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from balance_kernel.domain.currency import CurrencyRegistry
from balance_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidCurrencyError,
    MoneyParseError,
    ValidationError,
)

MONEY_SEPARATOR = "|"


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter ISO 4217 code. Validated and normalized (uppercased)
        on construction. Invalid codes are rejected immediately.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - code is always uppercase and stripped of whitespace
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if len(normalized) != 3 or not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are never separated.
        Every operation returns a new value.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a finite Decimal
        - currency is always a valid Currency
        - add/subtract enforce the same-currency constraint

    Non-goals:
        - Does NOT perform currency conversion
        - Does NOT auto-round; the stored precision is the caller's precision
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise ValidationError(f"Money amount must not be a float: {self.amount!r}")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValidationError(f"Invalid amount: {self.amount!r}") from e
        if not self.amount.is_finite():
            raise ValidationError(f"Invalid amount: {self.amount!r}")

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Factory method for creating Money.

        Args:
            amount: The monetary amount (Decimal, numeric string or int).
            currency: ISO 4217 currency code or Currency object.

        Raises:
            ValidationError: If the amount is not numeric.
            InvalidCurrencyError: If the currency code is unknown.
        """
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create the additive identity in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def parse(cls, raw: str) -> Money:
        """
        Parse the storage form ``"<decimal>|<currency>"``.

        Preconditions:
            - raw has exactly two fields separated by ``|``.

        Postconditions:
            - Returns Money whose amount keeps the exact decimal precision
              of the input string.

        Raises:
            MoneyParseError: On wrong field count, non-numeric amount or
                unknown currency code. Never defaults to zero.
        """
        if not isinstance(raw, str):
            raise MoneyParseError(repr(raw), "value is not a string")
        parts = raw.split(MONEY_SEPARATOR)
        if len(parts) != 2:
            raise MoneyParseError(raw, f"expected 2 fields, found {len(parts)}")
        amount_text, currency_text = parts
        try:
            amount = Decimal(amount_text.strip())
        except InvalidOperation as e:
            raise MoneyParseError(raw, f"amount {amount_text!r} is not numeric") from e
        if not amount.is_finite():
            raise MoneyParseError(raw, f"amount {amount_text!r} is not finite")
        try:
            currency = Currency(currency_text)
        except InvalidCurrencyError as e:
            raise MoneyParseError(raw, f"unknown currency code {currency_text!r}") from e
        return cls(amount=amount, currency=currency)

    def serialize(self) -> str:
        """Return the storage form ``"<decimal>|<currency>"``."""
        return f"{self.amount}{MONEY_SEPARATOR}{self.currency.code}"

    @property
    def currency_code(self) -> str:
        return self.currency.code

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def _require_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def add(self, other: Money) -> Money:
        """Add two Money values. Must be same currency."""
        self._require_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: Money) -> Money:
        """Subtract two Money values. Must be same currency."""
        self._require_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
