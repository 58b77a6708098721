from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.api.deps.business import BusinessContext, get_business_from_header
from reservo.api.deps.database import get_db
from reservo.schemas.availability import AvailabilityResponse
from reservo.services.availability import AvailabilityService
from reservo.services.catalog import CatalogService
from reservo.utils.validation import format_hhmm

router = APIRouter()


@router.get("", response_model=AvailabilityResponse)
async def get_availability(
    service_id: UUID = Query(..., description="Service to book"),
    date: date = Query(..., description="Day to search, YYYY-MM-DD"),
    staff_id: Optional[UUID] = Query(None, description="Restrict to one staff member"),
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """Bookable start times for a service on a date, as ``HH:MM`` strings."""
    service = await CatalogService(db).get_service(context.business_id, service_id)
    slots = await AvailabilityService(db).compute_available_slots(
        service, date, staff_uuid=staff_id, business=context.business
    )
    return AvailabilityResponse(
        service_id=service_id,
        date=date,
        staff_id=staff_id,
        slots=[format_hhmm(value) for value in slots],
    )
