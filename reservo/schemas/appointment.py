from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from reservo.models.appointment import Appointment, AppointmentStatus
from reservo.utils.validation import (
    format_hhmm,
    parse_hhmm,
    validate_email_format,
    validate_phone_number,
)


class BookingRequest(BaseModel):
    service_id: UUID
    date: date
    start_time: str = Field(..., examples=["10:30"])
    staff_id: Optional[UUID] = None
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return format_hhmm(parse_hhmm(v))

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        if not v.strip():
            raise ValueError("customer_name must not be blank")
        return v.strip()

    @field_validator("customer_email")
    @classmethod
    def validate_customer_email(cls, v):
        v = v.strip()
        if not validate_email_format(v):
            raise ValueError("customer_email is not a valid email address")
        return v

    @field_validator("customer_phone")
    @classmethod
    def validate_customer_phone(cls, v):
        if v and not validate_phone_number(v):
            raise ValueError("customer_phone is not a valid phone number")
        return v or None


class BookingResponse(BaseModel):
    appointment_id: UUID
    staff_id: UUID
    start_time: str
    end_time: str


class AppointmentResponse(BaseModel):
    id: UUID
    service_id: UUID
    staff_id: Optional[UUID] = None
    date: date
    start_time: str
    end_time: str
    status: AppointmentStatus
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    rescheduled_from_id: Optional[UUID] = None
    status_changed_at: Optional[datetime] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        """Build from an appointment whose service, staff and origin are loaded."""
        return cls(
            id=appointment.uuid,
            service_id=appointment.service.uuid,
            staff_id=appointment.staff.uuid if appointment.staff else None,
            date=appointment.appointment_date,
            start_time=format_hhmm(appointment.start_time),
            end_time=format_hhmm(appointment.end_time),
            status=AppointmentStatus(appointment.status),
            customer_name=appointment.customer_name,
            customer_email=appointment.customer_email,
            customer_phone=appointment.customer_phone,
            notes=appointment.notes,
            rescheduled_from_id=(
                appointment.rescheduled_from.uuid
                if appointment.rescheduled_from
                else None
            ),
            status_changed_at=appointment.status_changed_at,
        )


class AppointmentList(BaseModel):
    appointments: List[AppointmentResponse]
    total: int


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentReschedule(BaseModel):
    date: date
    start_time: str = Field(..., examples=["14:00"])
    staff_id: Optional[UUID] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return format_hhmm(parse_hhmm(v))
