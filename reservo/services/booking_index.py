from datetime import date
from typing import Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.models.appointment import Appointment, AppointmentStatus
from reservo.services.slots import TimeInterval

logger = structlog.get_logger(__name__)


class BookingIndex:
    """Read-only projection of a staff member's occupied intervals on a date.

    Reads go straight to the database so the result reflects the latest
    committed state visible to the current transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_booked_intervals(
        self,
        staff_id: int,
        target_date: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[TimeInterval]:
        """Ordered ``[start, end)`` intervals of non-cancelled appointments."""
        query = select(Appointment.start_time, Appointment.end_time).where(
            and_(
                Appointment.staff_id == staff_id,
                Appointment.appointment_date == target_date,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            )
        )
        if exclude_appointment_id is not None:
            query = query.where(Appointment.id != exclude_appointment_id)
        query = query.order_by(Appointment.start_time)

        result = await self.db.execute(query)
        intervals = [TimeInterval(start, end) for start, end in result.all()]

        logger.debug(
            "Loaded booked intervals",
            staff_id=staff_id,
            date=str(target_date),
            count=len(intervals),
        )
        return intervals
