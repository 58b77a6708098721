import uuid
from datetime import date

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reservo.core.database import Base


class WorkWindow(Base):
    """Daily working hours of one staff member over an inclusive date range.

    Times are stored as ``HH:MM`` strings; the schedule expander parses them
    and treats unparseable rows as schedule data errors.
    """

    __tablename__ = "work_windows"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)

    # Applicable date range (inclusive on both ends)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Daily hours
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_window_date_range"),
        Index("ix_work_windows_staff_dates", "staff_id", "start_date", "end_date"),
    )

    staff = relationship("Staff", back_populates="work_windows")

    def applies_on(self, target_date: date) -> bool:
        """Whether the window covers ``target_date``; weekdays are not special-cased."""
        return self.start_date <= target_date <= self.end_date

    def __repr__(self):
        return (
            f"<WorkWindow(id={self.id}, staff_id={self.staff_id}, "
            f"{self.start_date}..{self.end_date}: {self.start_time}-{self.end_time})>"
        )
