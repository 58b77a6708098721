from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.api.deps.business import BusinessContext, get_business_from_header
from reservo.api.deps.database import get_db
from reservo.core.exceptions import NotFound
from reservo.schemas.appointment import (
    AppointmentList,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
)
from reservo.services.appointment import AppointmentLifecycleService
from reservo.services.catalog import CatalogService

router = APIRouter()


@router.get("", response_model=AppointmentList)
async def list_appointments(
    date: date = Query(..., description="Day to list, YYYY-MM-DD"),
    staff_id: Optional[UUID] = Query(None),
    include_cancelled: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    staff = None
    if staff_id is not None:
        staff = await CatalogService(db).get_staff(
            context.business_id, staff_id, error_cls=NotFound
        )

    appointments = await AppointmentLifecycleService(db).list_appointments(
        context.business_id, date, staff=staff, include_cancelled=include_cancelled
    )
    return AppointmentList(
        appointments=[AppointmentResponse.from_appointment(a) for a in appointments],
        total=len(appointments),
    )


@router.get("/{appointment_uuid}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_uuid: UUID,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    appointment = await AppointmentLifecycleService(db).get_appointment(
        context.business_id, appointment_uuid
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{appointment_uuid}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_uuid: UUID,
    update: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """Complete or cancel a booked appointment."""
    appointment = await AppointmentLifecycleService(db).transition_status(
        context.business_id, appointment_uuid, update.status
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{appointment_uuid}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_uuid: UUID,
    data: AppointmentReschedule,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """Cancel the appointment and book the same service at the new time."""
    appointment = await AppointmentLifecycleService(db).reschedule(
        context.business_id, appointment_uuid, data
    )
    return AppointmentResponse.from_appointment(appointment)
