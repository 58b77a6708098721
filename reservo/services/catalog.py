from typing import Optional, Type

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.core.exceptions import BookingError, InvalidInput
from reservo.models.business import Business
from reservo.models.service import Service
from reservo.models.staff import Staff
from reservo.models.staff_service import StaffService

logger = structlog.get_logger(__name__)


class CatalogService:
    """Tenant-scoped read access to businesses, services and staff."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_business(self, business_id: int) -> Optional[Business]:
        result = await self.db.execute(select(Business).where(Business.id == business_id))
        return result.scalar_one_or_none()

    async def get_service(
        self,
        business_id: int,
        service_uuid,
        error_cls: Type[BookingError] = InvalidInput,
    ) -> Service:
        """Active service of the business.

        Raises:
            error_cls: if the service does not exist in this business or is inactive
        """
        result = await self.db.execute(
            select(Service).where(
                and_(Service.uuid == service_uuid, Service.business_id == business_id)
            )
        )
        service = result.scalar_one_or_none()
        if not service or not service.is_active:
            logger.warning(
                "Service not found", service_uuid=str(service_uuid), business_id=business_id
            )
            raise error_cls(f"Unknown service {service_uuid}")
        return service

    async def get_staff(
        self,
        business_id: int,
        staff_uuid,
        error_cls: Type[BookingError] = InvalidInput,
    ) -> Staff:
        result = await self.db.execute(
            select(Staff).where(
                and_(Staff.uuid == staff_uuid, Staff.business_id == business_id)
            )
        )
        staff = result.scalar_one_or_none()
        if not staff:
            logger.warning(
                "Staff not found", staff_uuid=str(staff_uuid), business_id=business_id
            )
            raise error_cls(f"Unknown staff member {staff_uuid}")
        return staff

    async def get_eligible_staff(self, service: Service) -> list[Staff]:
        """Bookable staff assigned to the service, in assignment order."""
        query = (
            select(Staff)
            .join(StaffService, StaffService.staff_id == Staff.id)
            .where(
                and_(
                    StaffService.service_id == service.id,
                    Staff.business_id == service.business_id,
                    Staff.is_bookable,
                    Staff.is_active,
                )
            )
            .order_by(StaffService.sort_order, StaffService.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_eligible_staff_member(self, service: Service, staff_uuid) -> Staff:
        """One staff member who is eligible for the service.

        Raises:
            InvalidInput: if the staff member is unknown or not eligible for the service
        """
        staff = await self.get_staff(service.business_id, staff_uuid)
        eligible_ids = {member.id for member in await self.get_eligible_staff(service)}
        if staff.id not in eligible_ids:
            raise InvalidInput(
                f"Staff member {staff_uuid} is not available for this service"
            )
        return staff
