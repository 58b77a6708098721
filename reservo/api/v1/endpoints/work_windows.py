from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.api.deps.business import BusinessContext, get_business_from_header
from reservo.api.deps.database import get_db
from reservo.core.exceptions import NotFound
from reservo.models.staff import Staff
from reservo.schemas.work_window import (
    WorkWindowBulkCreate,
    WorkWindowBulkResult,
    WorkWindowCreate,
    WorkWindowResponse,
    WorkWindowUpdate,
)
from reservo.services.availability_cache import AvailabilityCache
from reservo.services.catalog import CatalogService
from reservo.services.schedule import WorkWindowService

router = APIRouter()


async def _get_staff(db: AsyncSession, context: BusinessContext, staff_uuid: UUID) -> Staff:
    return await CatalogService(db).get_staff(
        context.business_id, staff_uuid, error_cls=NotFound
    )


async def _commit_schedule_change(db: AsyncSession, context: BusinessContext) -> None:
    await db.commit()
    await AvailabilityCache().invalidate(context.business_id)


@router.get("/{staff_uuid}/work-windows", response_model=List[WorkWindowResponse])
async def list_work_windows(
    staff_uuid: UUID,
    active_from: Optional[date] = Query(
        None, description="Only windows ending on or after this date"
    ),
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    staff = await _get_staff(db, context, staff_uuid)
    return await WorkWindowService(db).list_windows(staff, active_from=active_from)


@router.post(
    "/{staff_uuid}/work-windows",
    response_model=WorkWindowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_work_window(
    staff_uuid: UUID,
    window_data: WorkWindowCreate,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """Add a work window; overlapping an existing window is a 409."""
    staff = await _get_staff(db, context, staff_uuid)
    window = await WorkWindowService(db).create_window(staff, window_data)
    await _commit_schedule_change(db, context)
    return window


@router.post(
    "/{staff_uuid}/work-windows/bulk",
    response_model=WorkWindowBulkResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_work_windows_bulk(
    staff_uuid: UUID,
    bulk_data: WorkWindowBulkCreate,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """Same hours on selected weekdays; conflicting periods are skipped and reported."""
    staff = await _get_staff(db, context, staff_uuid)
    result = await WorkWindowService(db).create_windows_for_weekdays(staff, bulk_data)
    await _commit_schedule_change(db, context)
    return result


@router.put(
    "/{staff_uuid}/work-windows/{window_uuid}", response_model=WorkWindowResponse
)
async def update_work_window(
    staff_uuid: UUID,
    window_uuid: UUID,
    window_data: WorkWindowUpdate,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    staff = await _get_staff(db, context, staff_uuid)
    service = WorkWindowService(db)
    window = await service.get_window(staff, window_uuid)
    window = await service.update_window(window, window_data)
    await _commit_schedule_change(db, context)
    return window


@router.delete(
    "/{staff_uuid}/work-windows/{window_uuid}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_work_window(
    staff_uuid: UUID,
    window_uuid: UUID,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    staff = await _get_staff(db, context, staff_uuid)
    service = WorkWindowService(db)
    window = await service.get_window(staff, window_uuid)
    await service.delete_window(window)
    await _commit_schedule_change(db, context)
