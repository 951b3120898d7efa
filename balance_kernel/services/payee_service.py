"""
PayeeService -- the payee registry.

Responsibility:
    Creates, renames, looks up and deletes payees, and resolves the payee
    of a payment item (by id, or find-or-create by name) for
    PaymentPeriodService.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Names are trimmed, non-blank and at most PAYEE_NAME_MAX_LENGTH chars.
    - Names are unique ignoring case.  The uq_payee_name_key constraint is
      the final arbiter; the SELECT before INSERT is only a fast path.
    - find-or-create never raises DuplicatePayeeNameError: when a concurrent
      writer inserts the same name first, the winner's row is returned.
    - A payee referenced by payment items is never deleted; the ON DELETE
      RESTRICT foreign key is the final arbiter.
    - Returns frozen ``PayeeInfo`` DTOs, never ORM entities (``resolve()``
      is the one kernel-internal exception).

Failure modes:
    - BlankPayeeNameError / FieldTooLongError on invalid names.
    - PayeeNotFoundError when the id (or exact name) does not exist.
    - DuplicatePayeeNameError when another payee has the name.
    - PayeeReferencedError when deleting a payee still in use.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from balance_kernel.domain.clock import Clock
from balance_kernel.domain.dtos import PayeeInfo
from balance_kernel.domain.validation import (
    normalize_payee_name,
    payee_name_key,
    require,
)
from balance_kernel.exceptions import (
    DuplicatePayeeNameError,
    PayeeNotFoundError,
    PayeeReferencedError,
)
from balance_kernel.logging_config import get_logger
from balance_kernel.models.payee import Payee
from balance_kernel.models.payment_period import PaymentItem
from balance_kernel.services.base import BaseService, violates_constraint

logger = get_logger("services.payee")

_NAME_KEY_CONSTRAINT = ("uq_payee_name_key", "payees.name_key")


class PayeeService(BaseService[Payee]):
    """
    Service for managing payees.

    Contract:
        Public methods return ``PayeeInfo`` DTOs and flush within the
        caller's transaction.  Each mutation is atomic (SAVEPOINT).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_model(self, payee_id: UUID) -> Payee:
        require(payee_id, "payee_id")
        payee = self.session.get(Payee, payee_id)
        if payee is None:
            raise PayeeNotFoundError(str(payee_id))
        return payee

    def _find_model_by_name(self, name: str) -> Payee | None:
        stmt = select(Payee).where(Payee.name_key == payee_name_key(name))
        return self.session.execute(stmt).scalar_one_or_none()

    def _reference_count(self, payee_id: UUID) -> int:
        stmt = select(func.count(PaymentItem.id)).where(PaymentItem.payee_id == payee_id)
        return self.session.execute(stmt).scalar_one()

    def get_by_id(self, payee_id: UUID) -> PayeeInfo:
        """
        Get payee by ID.

        Raises:
            PayeeNotFoundError: If payee doesn't exist.
        """
        return PayeeInfo.from_model(self._get_model(payee_id))

    def find_by_id(self, payee_id: UUID) -> PayeeInfo | None:
        payee = self.session.get(Payee, payee_id)
        return PayeeInfo.from_model(payee) if payee else None

    def find_by_name(self, name: str) -> PayeeInfo | None:
        """Case-insensitive lookup, returning None if not found."""
        if name is None or not name.strip():
            return None
        payee = self._find_model_by_name(name)
        return PayeeInfo.from_model(payee) if payee else None

    def get_by_name(self, name: str) -> PayeeInfo:
        """
        Case-insensitive lookup.

        Raises:
            PayeeNotFoundError: If no payee has the name.
        """
        info = self.find_by_name(name)
        if info is None:
            raise PayeeNotFoundError(str(name))
        return info

    def exists_by_name(self, name: str) -> bool:
        return self.find_by_name(name) is not None

    def list_all(self) -> list[PayeeInfo]:
        """All payees, ordered alphabetically ignoring case."""
        stmt = select(Payee).order_by(Payee.name_key, Payee.id)
        return [PayeeInfo.from_model(p) for p in self.session.execute(stmt).scalars()]

    def search_by_name(self, term: str | None) -> list[PayeeInfo]:
        """
        Case-insensitive substring search, ordered alphabetically.

        A None, empty or blank term returns every payee.
        """
        if term is None or not term.strip():
            return self.list_all()
        needle = term.strip().casefold()
        stmt = (
            select(Payee)
            .where(Payee.name_key.contains(needle, autoescape=True))
            .order_by(Payee.name_key, Payee.id)
        )
        return [PayeeInfo.from_model(p) for p in self.session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _insert(self, name: str) -> Payee:
        payee = Payee(id=uuid4())
        payee.rename(name)
        payee.stamp_created(self.clock.now())
        self.session.add(payee)
        self.session.flush()
        return payee

    def create_payee(self, name: str) -> PayeeInfo:
        """
        Create a new payee.

        Raises:
            BlankPayeeNameError: If name is blank.
            FieldTooLongError: If name is too long.
            DuplicatePayeeNameError: If the name exists, ignoring case.
        """
        normalized = normalize_payee_name(name)
        if self._find_model_by_name(normalized) is not None:
            logger.warning("payee_duplicate_name", extra={"payee_name": normalized})
            raise DuplicatePayeeNameError(normalized)

        try:
            with self.atomic():
                payee = self._insert(normalized)
        except IntegrityError as exc:
            if violates_constraint(exc, *_NAME_KEY_CONSTRAINT):
                logger.warning("payee_duplicate_name", extra={"payee_name": normalized})
                raise DuplicatePayeeNameError(normalized) from exc
            raise

        logger.info(
            "payee_created",
            extra={"payee_id": str(payee.id), "payee_name": payee.name},
        )
        return PayeeInfo.from_model(payee)

    def _find_or_create_model(self, name: str) -> Payee:
        normalized = normalize_payee_name(name)
        existing = self._find_model_by_name(normalized)
        if existing is not None:
            return existing

        try:
            with self.atomic():
                payee = self._insert(normalized)
        except IntegrityError as exc:
            if not violates_constraint(exc, *_NAME_KEY_CONSTRAINT):
                raise
            # Lost the insert race: the other writer's row is committed now
            winner = self._find_model_by_name(normalized)
            if winner is None:
                raise
            logger.info(
                "payee_create_race_resolved",
                extra={"payee_id": str(winner.id), "payee_name": winner.name},
            )
            return winner

        logger.info(
            "payee_created",
            extra={
                "payee_id": str(payee.id),
                "payee_name": payee.name,
                "via": "find_or_create",
            },
        )
        return payee

    def find_or_create_payee(self, name: str) -> PayeeInfo:
        """
        Return the payee with this name (ignoring case and surrounding
        whitespace), creating it if it does not exist.

        Raises:
            BlankPayeeNameError: If name is blank.
            FieldTooLongError: If name is too long.
        """
        return PayeeInfo.from_model(self._find_or_create_model(name))

    def resolve(self, payee_id: UUID | None, payee_name: str | None) -> Payee:
        """
        Resolve the payee of a payment item.

        ``payee_id`` wins when given and must exist; otherwise the name is
        found or created.  Returns the ORM entity for use inside the
        kernel's own aggregate mutations.

        Raises:
            PayeeNotFoundError: If payee_id is given but doesn't exist.
            BlankPayeeNameError: If neither usable id nor name is given.
        """
        if payee_id is not None:
            return self._get_model(payee_id)
        return self._find_or_create_model(payee_name)

    def update_payee(self, payee_id: UUID, name: str) -> PayeeInfo:
        """
        Rename a payee.

        A change of case only (``acme`` -> ``ACME``) is always allowed; any
        other change must not collide with another payee.

        Raises:
            PayeeNotFoundError: If payee doesn't exist.
            DuplicatePayeeNameError: If another payee has the name.
        """
        normalized = normalize_payee_name(name)
        payee = self._get_model(payee_id)

        if payee_name_key(normalized) != payee.name_key:
            other = self._find_model_by_name(normalized)
            if other is not None and other.id != payee.id:
                logger.warning(
                    "payee_duplicate_name",
                    extra={"payee_id": str(payee_id), "payee_name": normalized},
                )
                raise DuplicatePayeeNameError(normalized)

        old_name = payee.name
        try:
            with self.atomic():
                payee.rename(normalized)
                payee.touch(self.clock.now())
                self.session.flush()
        except IntegrityError as exc:
            if violates_constraint(exc, *_NAME_KEY_CONSTRAINT):
                raise DuplicatePayeeNameError(normalized) from exc
            raise

        logger.info(
            "payee_updated",
            extra={
                "payee_id": str(payee.id),
                "old_name": old_name,
                "payee_name": payee.name,
            },
        )
        return PayeeInfo.from_model(payee)

    def delete_payee(self, payee_id: UUID) -> None:
        """
        Delete a payee that no payment item references.

        Raises:
            PayeeNotFoundError: If payee doesn't exist.
            PayeeReferencedError: If payment items still reference it.
        """
        payee = self._get_model(payee_id)

        references = self._reference_count(payee.id)
        if references:
            logger.warning(
                "payee_delete_rejected",
                extra={"payee_id": str(payee_id), "reference_count": references},
            )
            raise PayeeReferencedError(str(payee_id))

        try:
            with self.atomic():
                self.session.delete(payee)
                self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "payee_delete_rejected",
                extra={"payee_id": str(payee_id), "reason": "foreign_key"},
            )
            raise PayeeReferencedError(str(payee_id)) from exc

        logger.info("payee_deleted", extra={"payee_id": str(payee_id)})
