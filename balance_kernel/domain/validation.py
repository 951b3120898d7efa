"""
Validation -- input limits and boundary checks for payees and payment items.

All length limits live here as named constants. Every validator either
returns the normalized value or raises a ValidationError subclass before
any persistence is attempted.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from balance_kernel.exceptions import (
    BlankPayeeNameError,
    FieldTooLongError,
    InvalidDateRangeError,
    MissingFieldError,
    MissingPayeeReferenceError,
)

PAYEE_NAME_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 500

# casefold() expands some characters to as many as three code points.
PAYEE_NAME_KEY_MAX_LENGTH = PAYEE_NAME_MAX_LENGTH * 3


def require(value: Any, field: str) -> Any:
    """Return value, raising MissingFieldError if it is None."""
    if value is None:
        raise MissingFieldError(field)
    return value


def normalize_payee_name(name: str | None) -> str:
    """
    Validate a payee name and return it trimmed.

    Raises:
        BlankPayeeNameError: If name is None, empty or whitespace.
        FieldTooLongError: If the trimmed name exceeds PAYEE_NAME_MAX_LENGTH.
    """
    if name is None or not name.strip():
        raise BlankPayeeNameError()
    trimmed = name.strip()
    if len(trimmed) > PAYEE_NAME_MAX_LENGTH:
        raise FieldTooLongError("payee_name", PAYEE_NAME_MAX_LENGTH, len(trimmed))
    return trimmed


def payee_name_key(name: str) -> str:
    """Case-insensitive lookup key for a payee name."""
    return name.strip().casefold()


def validate_notes(notes: str | None) -> str | None:
    """Notes are optional; when present they are limited to NOTES_MAX_LENGTH."""
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise FieldTooLongError("notes", NOTES_MAX_LENGTH, len(notes))
    return notes


def has_payee_reference(payee_id: Any, payee_name: str | None) -> bool:
    return payee_id is not None or bool(payee_name and payee_name.strip())


def require_payee_reference(payee_id: Any, payee_name: str | None) -> None:
    if not has_payee_reference(payee_id, payee_name):
        raise MissingPayeeReferenceError()


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    """Inclusive range check: both ends required, start <= end."""
    require(start_date, "start_date")
    require(end_date, "end_date")
    if start_date > end_date:
        raise InvalidDateRangeError(str(start_date), str(end_date))
