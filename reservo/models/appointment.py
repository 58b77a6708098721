import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import relationship

from reservo.core.database import Base

NO_OVERLAP_CONSTRAINT = "appointments_no_overlap_per_staff"


class AppointmentStatus(enum.Enum):
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    AppointmentStatus.BOOKED: [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.COMPLETED: [],  # Final state
    AppointmentStatus.CANCELLED: [],  # Final state
}


class Appointment(Base):
    """Committed booking of one service by one customer with one staff member."""

    __tablename__ = "appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)

    # Appointment participants
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)

    # Scheduling details; end_time is derived from the service duration at creation
    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.BOOKED.value, index=True
    )
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())

    # Raw customer contact fields, always stored
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    # Rescheduling
    rescheduled_from_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        Index("ix_appointments_staff_date", "staff_id", "appointment_date"),
    )

    # Relationships
    service = relationship("Service")
    staff = relationship("Staff")
    customer = relationship("Customer", back_populates="appointments")
    rescheduled_from = relationship("Appointment", remote_side=[id])

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can transition to the new status."""
        current = AppointmentStatus(self.status)
        return new_status in ALLOWED_TRANSITIONS.get(current, [])

    def transition_to(self, new_status: AppointmentStatus) -> bool:
        """Transition appointment to new status with validation."""
        if not self.can_transition_to(new_status):
            return False

        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)
        return True

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"date='{self.appointment_date}', {self.start_time}-{self.end_time}, "
            f"staff_id={self.staff_id})>"
        )


# Exclusion guarantee on PostgreSQL (needs btree_gist): no two non-cancelled
# appointments of one staff member may overlap. Other dialects rely on the
# serialized commit transaction instead.
_appointments = Appointment.__table__
_appointments.append_constraint(
    ExcludeConstraint(
        (_appointments.c.staff_id, "="),
        (
            func.tsrange(
                _appointments.c.appointment_date + _appointments.c.start_time,
                _appointments.c.appointment_date + _appointments.c.end_time,
            ),
            "&&",
        ),
        name=NO_OVERLAP_CONSTRAINT,
        using="gist",
        where=_appointments.c.status != AppointmentStatus.CANCELLED.value,
    ).ddl_if(dialect="postgresql")
)
