from datetime import date
from typing import Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reservo.core.database import begin_exclusive
from reservo.core.exceptions import InvalidStatusTransition, NotFound
from reservo.models.appointment import Appointment, AppointmentStatus
from reservo.models.staff import Staff
from reservo.schemas.appointment import AppointmentReschedule, BookingRequest
from reservo.services.availability_cache import AvailabilityCache
from reservo.services.booking import BookingCommitter
from reservo.utils.validation import parse_hhmm

logger = structlog.get_logger(__name__)


def _with_relations(query):
    return query.options(
        selectinload(Appointment.service),
        selectinload(Appointment.staff),
        selectinload(Appointment.rescheduled_from),
    )


class AppointmentLifecycleService:
    """Reads appointments and moves them through their status lifecycle."""

    def __init__(self, db: AsyncSession, cache: Optional[AvailabilityCache] = None):
        self.db = db
        self.cache = cache or AvailabilityCache()

    async def get_appointment(self, business_id: int, appointment_uuid) -> Appointment:
        result = await self.db.execute(
            _with_relations(
                select(Appointment).where(
                    and_(
                        Appointment.uuid == appointment_uuid,
                        Appointment.business_id == business_id,
                    )
                )
            )
        )
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    async def list_appointments(
        self,
        business_id: int,
        target_date: date,
        staff: Optional[Staff] = None,
        include_cancelled: bool = False,
    ) -> list[Appointment]:
        query = select(Appointment).where(
            and_(
                Appointment.business_id == business_id,
                Appointment.appointment_date == target_date,
            )
        )
        if staff is not None:
            query = query.where(Appointment.staff_id == staff.id)
        if not include_cancelled:
            query = query.where(Appointment.status != AppointmentStatus.CANCELLED.value)

        result = await self.db.execute(
            _with_relations(query).order_by(Appointment.start_time, Appointment.id)
        )
        return list(result.scalars().all())

    async def transition_status(
        self, business_id: int, appointment_uuid, new_status: AppointmentStatus
    ) -> Appointment:
        """
        Move an appointment to ``new_status``.

        Cancelling frees the interval immediately for availability and booking.

        Raises:
            NotFound: unknown appointment
            InvalidStatusTransition: the lifecycle does not allow the move
        """
        await begin_exclusive(self.db)
        appointment = await self.get_appointment(business_id, appointment_uuid)
        old_status = appointment.status

        if not appointment.transition_to(new_status):
            raise InvalidStatusTransition(
                f"Cannot change status from {old_status} to {new_status.value}"
            )

        await self.db.commit()
        await self.cache.invalidate(business_id)

        logger.info(
            "Appointment status changed",
            appointment_id=appointment.id,
            old_status=old_status,
            new_status=new_status.value,
        )
        return appointment

    async def reschedule(
        self, business_id: int, appointment_uuid, data: AppointmentReschedule
    ) -> Appointment:
        """
        Move a booked appointment to a new date, time or staff member.

        The old appointment is cancelled and a new one committed in the same
        transaction, so the customer never holds both slots or neither.
        Without an explicit staff member the current one is kept when free,
        otherwise any eligible staff member may be assigned.
        """
        appointment = await self.get_appointment(business_id, appointment_uuid)
        if appointment.status != AppointmentStatus.BOOKED.value:
            raise InvalidStatusTransition(
                f"Cannot reschedule a {appointment.status} appointment"
            )

        committer = BookingCommitter(self.db, cache=self.cache)
        staff_uuid = data.staff_id
        current_staff = appointment.staff
        if staff_uuid is None and current_staff is not None and current_staff.is_eligible:
            keep_current = await committer.availability.is_staff_free(
                appointment.service,
                current_staff,
                data.date,
                parse_hhmm(data.start_time),
                exclude_appointment_id=appointment.id,
            )
            if keep_current:
                staff_uuid = current_staff.uuid

        request = BookingRequest(
            service_id=appointment.service.uuid,
            date=data.date,
            start_time=data.start_time,
            staff_id=staff_uuid,
            customer_name=appointment.customer_name,
            customer_email=appointment.customer_email,
            customer_phone=appointment.customer_phone,
            notes=appointment.notes,
        )
        new_appointment = await committer.commit(business_id, request, replaces=appointment)

        logger.info(
            "Appointment rescheduled",
            old_appointment_id=appointment.id,
            new_appointment_id=new_appointment.id,
        )
        return await self.get_appointment(business_id, new_appointment.uuid)
