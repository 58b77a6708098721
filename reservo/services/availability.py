from datetime import date, time
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.core.exceptions import InvalidInput, ScheduleDataError
from reservo.models.business import Business
from reservo.models.service import Service
from reservo.models.staff import Staff
from reservo.services.availability_cache import AvailabilityCache
from reservo.services.booking_index import BookingIndex
from reservo.services.catalog import CatalogService
from reservo.services.schedule import WorkWindowService
from reservo.services.slots import (
    SlotGenerator,
    TimeInterval,
    is_interval_free,
    resolve_granularity,
)
from reservo.utils.validation import format_hhmm, parse_hhmm

logger = structlog.get_logger(__name__)


class AvailabilityService:
    """
    Computes bookable start times and resolves which staff member can take a slot.

    Reads never mutate state: calling any method twice against the same stored
    data yields the same answer.
    """

    def __init__(self, db: AsyncSession, cache: Optional[AvailabilityCache] = None):
        self.db = db
        self.catalog = CatalogService(db)
        self.work_windows = WorkWindowService(db)
        self.booking_index = BookingIndex(db)
        self.cache = cache or AvailabilityCache()

    async def compute_available_slots(
        self,
        service: Service,
        target_date: date,
        staff_uuid=None,
        business: Optional[Business] = None,
    ) -> list[time]:
        """
        Available start times for ``service`` on ``target_date``.

        With ``staff_uuid`` only that staff member is considered; otherwise the
        result is the sorted union of distinct start times over every eligible
        staff member. A staff member whose stored schedule cannot be read is
        logged and contributes nothing.

        Raises:
            InvalidInput: if the duration is not positive or ``staff_uuid`` is not
                eligible for the service
        """
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise InvalidInput("Service duration must be a positive number of minutes")

        if staff_uuid is not None:
            staff_members = [
                await self.catalog.get_eligible_staff_member(service, staff_uuid)
            ]
            cache_staff_id = staff_members[0].id
        else:
            staff_members = await self.catalog.get_eligible_staff(service)
            cache_staff_id = None

        if not staff_members:
            logger.info(
                "No eligible staff for service",
                service_id=service.id,
                date=str(target_date),
            )
            return []

        cached, generation = await self.cache.lookup(
            service.business_id, service.id, target_date, cache_staff_id
        )
        if cached is not None:
            return [parse_hhmm(value) for value in cached]

        if business is None:
            business = await self.catalog.get_business(service.business_id)
        generator = SlotGenerator(resolve_granularity(service, business))

        starts = set()
        for staff in staff_members:
            try:
                slots = await self._slots_for_staff(staff, service, target_date, generator)
            except ScheduleDataError as e:
                logger.error(
                    "Skipping staff member with unreadable schedule",
                    staff_id=staff.id,
                    date=str(target_date),
                    error=e.message,
                )
                continue
            starts.update(slot.start for slot in slots)

        available = sorted(starts)
        await self.cache.store(
            service.business_id,
            service.id,
            target_date,
            cache_staff_id,
            generation,
            [format_hhmm(value) for value in available],
        )

        logger.info(
            "Computed availability",
            service_id=service.id,
            date=str(target_date),
            staff_considered=len(staff_members),
            slots=len(available),
        )
        return available

    async def find_available_staff(
        self,
        service: Service,
        target_date: date,
        start_time: time,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Staff]:
        """
        First eligible staff member, in assignment order, who can take the interval.

        Returns ``None`` when nobody can; that is a normal outcome, not an error.
        """
        interval = TimeInterval.from_start(start_time, service.duration_minutes)
        for staff in await self.catalog.get_eligible_staff(service):
            if await self._is_free(staff, target_date, interval, exclude_appointment_id):
                logger.debug(
                    "Resolved staff for slot",
                    staff_id=staff.id,
                    date=str(target_date),
                    interval=str(interval),
                )
                return staff
        return None

    async def is_staff_free(
        self,
        service: Service,
        staff: Staff,
        target_date: date,
        start_time: time,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        interval = TimeInterval.from_start(start_time, service.duration_minutes)
        return await self._is_free(staff, target_date, interval, exclude_appointment_id)

    async def _slots_for_staff(
        self,
        staff: Staff,
        service: Service,
        target_date: date,
        generator: SlotGenerator,
    ) -> list[TimeInterval]:
        working = await self.work_windows.get_working_intervals(staff.id, target_date)
        if not working:
            return []
        booked = await self.booking_index.get_booked_intervals(staff.id, target_date)

        slots = []
        for interval in working:
            slots.extend(generator.generate(interval, booked, service.duration_minutes))
        return slots

    async def _is_free(
        self,
        staff: Staff,
        target_date: date,
        interval: TimeInterval,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        try:
            working = await self.work_windows.get_working_intervals(staff.id, target_date)
        except ScheduleDataError as e:
            logger.error(
                "Treating staff member with unreadable schedule as unavailable",
                staff_id=staff.id,
                date=str(target_date),
                error=e.message,
            )
            return False
        if not working:
            return False

        booked = await self.booking_index.get_booked_intervals(
            staff.id, target_date, exclude_appointment_id
        )
        return is_interval_free(interval, working, booked)
