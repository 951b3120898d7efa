"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  Concrete services receive a
    SQLAlchemy ``Session`` and an injectable ``Clock``; they persist via
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back the outer transaction.
      The caller (BalanceTracker, session_scope(), or test harness) owns
      commit/rollback.
    - Atomic operations: every mutating operation runs inside
      ``atomic()`` (a SAVEPOINT).  Any failure rolls the savepoint back,
      restoring every object it touched, so no partial change is ever
      left in the session.

Failure modes:
    - If a subclass mutates state outside ``atomic()``, a failure halfway
      through can leave a partially applied change for the caller to commit.
"""

from __future__ import annotations

from abc import ABC
from contextlib import contextmanager
from collections.abc import Iterator
from typing import Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from balance_kernel.db.base import Base
from balance_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


def violates_constraint(exc: IntegrityError, *markers: str) -> bool:
    """
    Check whether an IntegrityError names one of the given constraints.

    PostgreSQL reports the constraint name (``uq_payment_period_date``);
    SQLite reports the column (``payment_periods.period_date``).  Callers
    pass both.
    """
    message = str(exc.orig if exc.orig is not None else exc)
    return any(marker in message for marker in markers)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the outer transaction.
        - ``self.clock`` is the only source of record timestamps.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for timestamps (defaults to SystemClock).
        """
        self.session = session
        self.clock = clock or SystemClock()

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Run a block inside a SAVEPOINT; roll it back on any exception."""
        with self.session.begin_nested():
            yield self.session
