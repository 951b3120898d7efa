"""session_scope: commit, rollback and store error translation."""

import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError, ProgrammingError

from balance_kernel.db.engine import get_session_factory, session_scope, translate_store_error
from balance_kernel.exceptions import (
    StoreOperationError,
    StoreUnavailableError,
    TransactionAbortedError,
)
from balance_kernel.services.payee_service import PayeeService


@pytest.fixture
def factory(tracker):
    """Session factory on the test engine; the tracker fixture cleans up rows."""
    return get_session_factory()


class TestSessionScope:

    def test_commits_on_success(self, factory, clock):
        with session_scope(factory) as session:
            PayeeService(session, clock).create_payee("Acme")
        with session_scope(factory) as session:
            assert PayeeService(session, clock).find_by_name("acme") is not None

    def test_rolls_back_on_error(self, factory, clock):
        with pytest.raises(RuntimeError):
            with session_scope(factory) as session:
                PayeeService(session, clock).create_payee("Acme")
                raise RuntimeError("boom")
        with session_scope(factory) as session:
            assert PayeeService(session, clock).find_by_name("acme") is None

    def test_operational_error_becomes_transaction_aborted(self, factory):
        with pytest.raises(TransactionAbortedError) as exc_info:
            with session_scope(factory):
                raise OperationalError("UPDATE x", {}, Exception("database is locked"))
        assert "database is locked" in exc_info.value.detail
        assert exc_info.value.transient

    def test_invalidated_connection_becomes_store_unavailable(self, factory):
        with pytest.raises(StoreUnavailableError):
            with session_scope(factory):
                raise OperationalError(
                    "SELECT 1", {}, Exception("server closed the connection"),
                    connection_invalidated=True,
                )

    def test_data_error_is_not_transient(self, factory):
        with pytest.raises(StoreOperationError) as exc_info:
            with session_scope(factory):
                raise DataError("INSERT", {}, Exception("value too long for type"))
        assert "value too long" in exc_info.value.detail
        assert not exc_info.value.transient

    def test_integrity_error_passes_through(self, factory):
        with pytest.raises(IntegrityError):
            with session_scope(factory):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))


class TestTranslateStoreError:

    def test_detail_from_driver_error(self):
        error = translate_store_error(OperationalError("SELECT 1", {}, Exception("timeout")))
        assert isinstance(error, TransactionAbortedError)
        assert error.detail == "timeout"

    @pytest.mark.parametrize("error_class", [DataError, ProgrammingError])
    def test_statement_errors_are_not_retryable(self, error_class):
        error = translate_store_error(error_class("SELECT 1", {}, Exception("rejected")))
        assert isinstance(error, StoreOperationError)
        assert not isinstance(error, TransactionAbortedError)
        assert not error.transient

    def test_operational_error_is_retryable(self):
        error = translate_store_error(OperationalError("SELECT 1", {}, Exception("deadlock")))
        assert error.transient
