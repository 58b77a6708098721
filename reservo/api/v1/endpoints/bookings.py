from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.api.deps.business import BusinessContext, get_business_from_header
from reservo.api.deps.database import get_db
from reservo.schemas.appointment import BookingRequest, BookingResponse
from reservo.services.booking import BookingCommitter
from reservo.utils.validation import format_hhmm

router = APIRouter()


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking: BookingRequest,
    db: AsyncSession = Depends(get_db),
    context: BusinessContext = Depends(get_business_from_header),
):
    """
    Commit a booking.

    Without ``staff_id`` the first eligible staff member who is free for the
    whole interval is assigned. A 409 ``slot_unavailable`` means the caller
    should pick another time; a 503 ``persistence_unavailable`` may be retried
    with the identical request.
    """
    appointment = await BookingCommitter(db).commit(context.business_id, booking)
    return BookingResponse(
        appointment_id=appointment.uuid,
        staff_id=appointment.staff.uuid,
        start_time=format_hhmm(appointment.start_time),
        end_time=format_hhmm(appointment.end_time),
    )
