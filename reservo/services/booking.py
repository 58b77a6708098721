"""Booking committer: the only writer of appointments.

A booking is re-validated and inserted inside one transaction that holds the
chosen staff member's row lock, so two concurrent commits for overlapping
intervals of one staff member cannot both succeed. On PostgreSQL the
``appointments_no_overlap_per_staff`` exclusion constraint backs this up; on
SQLite the commit transaction is opened with ``BEGIN IMMEDIATE``.
"""

import asyncio
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from reservo.core.database import begin_exclusive
from reservo.core.exceptions import (
    BookingError,
    InvalidInput,
    InvalidStatusTransition,
    PersistenceUnavailable,
    SlotUnavailable,
)
from reservo.models.appointment import (
    NO_OVERLAP_CONSTRAINT,
    Appointment,
    AppointmentStatus,
)
from reservo.models.service import Service
from reservo.models.staff import Staff
from reservo.schemas.appointment import BookingRequest
from reservo.services.availability import AvailabilityService
from reservo.services.availability_cache import AvailabilityCache
from reservo.services.catalog import CatalogService
from reservo.services.customer import CustomerService
from reservo.services.slots import TimeInterval
from reservo.utils.validation import parse_hhmm

logger = structlog.get_logger(__name__)

EXCLUSION_VIOLATION = "23P01"
# query_canceled (statement timeout), serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = {"57014", "40001", "40P01", "55P03"}
# connection_exception class, plus server shutdown and too_many_connections
TRANSIENT_SQLSTATE_PREFIXES = ("08", "57P0", "53300")
SQLITE_BUSY_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def _sqlstate(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_overlap_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) == EXCLUSION_VIOLATION:
        return True
    return NO_OVERLAP_CONSTRAINT in str(getattr(exc, "orig", exc))


def is_transient_failure(exc: BaseException) -> bool:
    """Failures where resubmitting the identical request is safe."""
    if isinstance(exc, asyncio.TimeoutError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        sqlstate = _sqlstate(exc)
        if sqlstate in TRANSIENT_SQLSTATES:
            return True
        if sqlstate and sqlstate.startswith(TRANSIENT_SQLSTATE_PREFIXES):
            return True
        if isinstance(exc, OperationalError):
            message = str(getattr(exc, "orig", exc)).lower()
            return any(busy in message for busy in SQLITE_BUSY_MESSAGES)
    return False


class BookingCommitter:
    """Validates a booking request and persists it exclusively."""

    def __init__(self, db: AsyncSession, cache: Optional[AvailabilityCache] = None):
        self.db = db
        self.cache = cache or AvailabilityCache()
        self.catalog = CatalogService(db)
        self.availability = AvailabilityService(db, cache=self.cache)
        self.customers = CustomerService(db)

    async def commit(
        self,
        business_id: int,
        request: BookingRequest,
        replaces: Optional[Appointment] = None,
    ) -> Appointment:
        """
        Commit a booking and return the stored appointment.

        When ``replaces`` is given, that appointment is cancelled in the same
        transaction and its interval does not block the new one.

        Raises:
            InvalidInput: unknown service or staff, bad time, non-positive duration
            SlotUnavailable: nobody can take the slot, or it was taken meanwhile
            InvalidStatusTransition: ``replaces`` is no longer booked
            PersistenceUnavailable: transient storage failure; safe to retry
        """
        log = logger.bind(
            business_id=business_id,
            service_id=str(request.service_id),
            date=str(request.date),
            start_time=request.start_time,
        )

        try:
            appointment = await self._commit(business_id, request, replaces, log)
        except BookingError as e:
            await self._rollback()
            log.info("Booking rejected", reason=e.reason, detail=e.message)
            raise
        except IntegrityError as e:
            await self._rollback()
            if is_overlap_violation(e):
                log.info("Booking rejected by overlap constraint")
                raise SlotUnavailable(SlotUnavailable.TAKEN) from e
            log.error("Booking failed on integrity error", error=str(e))
            raise
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            await self._rollback()
            if is_transient_failure(e):
                log.warning("Booking failed on transient storage error", error=str(e))
                raise PersistenceUnavailable(
                    "Storage temporarily unavailable, please retry"
                ) from e
            log.error("Booking failed", error=str(e))
            raise

        await self.cache.invalidate(business_id)
        return appointment

    async def _commit(
        self,
        business_id: int,
        request: BookingRequest,
        replaces: Optional[Appointment],
        log,
    ) -> Appointment:
        await begin_exclusive(self.db)
        service = await self.catalog.get_service(business_id, request.service_id)
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise InvalidInput("Service duration must be a positive number of minutes")
        try:
            start_time = parse_hhmm(request.start_time)
        except ValueError as e:
            raise InvalidInput(str(e))
        interval = TimeInterval.from_start(start_time, service.duration_minutes)

        exclude_id = None
        if replaces is not None:
            await self.db.refresh(replaces, attribute_names=["status"])
            if not replaces.can_transition_to(AppointmentStatus.CANCELLED):
                raise InvalidStatusTransition(
                    f"Cannot reschedule a {replaces.status} appointment"
                )
            exclude_id = replaces.id

        staff = await self._resolve_staff(service, request, start_time, exclude_id)

        # Exclusive section: lock the staff row, then re-check against fresh data
        await self.db.execute(select(Staff.id).where(Staff.id == staff.id).with_for_update())
        still_free = await self.availability.is_staff_free(
            service, staff, request.date, start_time, exclude_appointment_id=exclude_id
        )
        if not still_free:
            raise SlotUnavailable(SlotUnavailable.TAKEN)

        customer = await self.customers.find_or_create(
            business_id,
            request.customer_name,
            request.customer_email,
            request.customer_phone,
        )

        if replaces is not None:
            replaces.transition_to(AppointmentStatus.CANCELLED)
            await self.db.flush()

        appointment = Appointment(
            business_id=business_id,
            service_id=service.id,
            staff_id=staff.id,
            customer_id=customer.id if customer else None,
            appointment_date=request.date,
            start_time=interval.start,
            end_time=interval.end,
            status=AppointmentStatus.BOOKED.value,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            notes=request.notes,
            rescheduled_from_id=replaces.id if replaces is not None else None,
        )
        self.db.add(appointment)
        await self.db.flush()
        await self.db.commit()

        # Attach the loaded rows without marking the appointment dirty
        set_committed_value(appointment, "staff", staff)
        set_committed_value(appointment, "service", service)

        log.info(
            "Booking committed",
            appointment_id=appointment.id,
            appointment_uuid=str(appointment.uuid),
            staff_id=staff.id,
            end_time=str(interval.end),
            customer_linked=customer is not None,
            rescheduled_from=replaces.id if replaces is not None else None,
        )
        return appointment

    async def _resolve_staff(
        self,
        service: Service,
        request: BookingRequest,
        start_time,
        exclude_id: Optional[int],
    ) -> Staff:
        if request.staff_id is not None:
            return await self.catalog.get_eligible_staff_member(service, request.staff_id)

        staff = await self.availability.find_available_staff(
            service, request.date, start_time, exclude_appointment_id=exclude_id
        )
        if staff is None:
            raise SlotUnavailable(SlotUnavailable.NO_STAFF)
        return staff

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback after failed booking also failed", error=str(e))
