import asyncio

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, ProgrammingError

from reservo.core.exceptions import (
    InvalidInput,
    PersistenceUnavailable,
    ScheduleDataError,
    SlotUnavailable,
)
from reservo.services.booking import is_overlap_violation, is_transient_failure


class FakeDriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


class TestBookingErrorPayloads:
    def test_slot_unavailable_payload(self):
        error = SlotUnavailable(SlotUnavailable.TAKEN)

        assert error.status_code == 409
        assert error.to_dict() == {
            "reason": "slot_unavailable",
            "detail": "slot no longer available",
        }

    def test_persistence_unavailable_is_retryable(self):
        payload = PersistenceUnavailable("try again").to_dict()

        assert payload["reason"] == "persistence_unavailable"
        assert payload["retryable"] is True
        assert PersistenceUnavailable.status_code == 503

    def test_details_are_included_when_present(self):
        payload = InvalidInput("bad", details={"field": "date"}).to_dict()

        assert payload["details"] == {"field": "date"}

    def test_default_message_is_reason(self):
        assert str(InvalidInput()) == "invalid_input"

    def test_schedule_data_error_keeps_staff_id(self):
        assert ScheduleDataError("broken", staff_id=3).staff_id == 3


class TestOverlapViolation:
    def test_exclusion_sqlstate(self):
        error = IntegrityError("INSERT", {}, FakeDriverError("conflict", sqlstate="23P01"))

        assert is_overlap_violation(error)

    def test_constraint_name_in_message(self):
        error = IntegrityError(
            "INSERT",
            {},
            FakeDriverError(
                'conflicting key value violates exclusion constraint '
                '"appointments_no_overlap_per_staff"'
            ),
        )

        assert is_overlap_violation(error)

    def test_other_integrity_errors(self):
        error = IntegrityError(
            "INSERT", {}, FakeDriverError("FOREIGN KEY constraint failed", sqlstate="23503")
        )

        assert not is_overlap_violation(error)


class TestTransientFailure:
    def test_sqlite_lock_contention(self):
        assert is_transient_failure(
            OperationalError("BEGIN IMMEDIATE", {}, FakeDriverError("database is locked"))
        )

    def test_schema_errors_are_not_transient(self):
        assert not is_transient_failure(
            OperationalError("SELECT", {}, FakeDriverError("no such table: appointments"))
        )

    def test_postgres_connection_failure(self):
        error = OperationalError(
            "SELECT", {}, FakeDriverError("server closed the connection", sqlstate="08006")
        )

        assert is_transient_failure(error)

    def test_invalidated_connection(self):
        error = DBAPIError(
            "SELECT 1", {}, FakeDriverError("connection reset"), connection_invalidated=True
        )

        assert is_transient_failure(error)

    def test_statement_timeout_and_deadlock(self):
        for sqlstate in ("57014", "40P01", "40001"):
            error = DBAPIError("INSERT", {}, FakeDriverError("cancelled", sqlstate=sqlstate))
            assert is_transient_failure(error)

    def test_asyncio_timeout(self):
        assert is_transient_failure(asyncio.TimeoutError())

    def test_programming_errors_are_not_transient(self):
        assert not is_transient_failure(
            ProgrammingError("SELECT", {}, FakeDriverError("syntax error", sqlstate="42601"))
        )
