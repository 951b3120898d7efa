"""
Module: balance_kernel.models.payee
Responsibility: ORM persistence for payees, the reusable named recipients of
    payment items.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - Payee names are unique ignoring case: name_key holds the trimmed,
      case-folded name and carries the uq_payee_name_key constraint.  The
      constraint, not an application pre-check, is the final arbiter.
    - A payee referenced by any payment item cannot be deleted
      (payment_items.payee_id is ON DELETE RESTRICT).

Failure modes:
    - IntegrityError on duplicate name_key (translated by PayeeService).
    - IntegrityError on delete while referenced (translated by PayeeService).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from balance_kernel.db.base import TrackedBase
from balance_kernel.domain.validation import (
    PAYEE_NAME_KEY_MAX_LENGTH,
    PAYEE_NAME_MAX_LENGTH,
    payee_name_key,
)


class Payee(TrackedBase):
    """
    Named recipient of payments.

    Contract:
        ``name`` keeps the caller's casing (trimmed); ``name_key`` is derived
        from it and must only be changed through ``rename()``.
    """

    __tablename__ = "payees"

    __table_args__ = (
        UniqueConstraint("name_key", name="uq_payee_name_key"),
    )

    # Display name, trimmed
    name: Mapped[str] = mapped_column(
        String(PAYEE_NAME_MAX_LENGTH),
        nullable=False,
    )

    # Case-insensitive lookup key
    name_key: Mapped[str] = mapped_column(
        String(PAYEE_NAME_KEY_MAX_LENGTH),
        nullable=False,
    )

    def rename(self, name: str) -> None:
        """Set the display name and its lookup key together."""
        self.name = name
        self.name_key = payee_name_key(name)

    def __repr__(self) -> str:
        return f"<Payee {self.name!r}>"
