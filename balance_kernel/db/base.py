"""
Module: balance_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, type annotation map for consistent column
    types, and the TrackedBase mixin for record timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - UUID primary keys: Every model inherits a uuid4-generated primary key,
      ensuring globally unique, non-sequential identifiers.
    - Money columns: type_annotation_map maps the domain Money value to the
      "<decimal>|<currency>" text codec. NEVER use float for monetary amounts.
    - Timestamps: TrackedBase provides created_at and updated_at.  They are
      stamped explicitly by services from the injected Clock; there is no
      server default and no onupdate hook.

Failure modes:
    - IntegrityError if a service flushes a TrackedBase row without stamping
      its timestamps (both columns are NOT NULL).
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from balance_kernel.db.types import MoneyString, UTCDateTime
from balance_kernel.domain.values import Money


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Money maps to MoneyString -- one "<decimal>|<currency>" text field.
        - datetime maps to UTCDateTime -- always timezone-aware on load.
    """

    type_annotation_map: ClassVar[dict] = {
        Money: MoneyString(),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with record timestamps.

    Contract:
        Services call ``stamp_created(now)`` when adding a row and
        ``touch(now)`` on every change, with ``now`` from the injected Clock.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def stamp_created(self, now: datetime) -> None:
        self.created_at = now
        self.updated_at = now

    def touch(self, now: datetime) -> None:
        self.updated_at = now


# Re-export UUID for convenience
UUID = PyUUID
