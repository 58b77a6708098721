import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reservo.core.database import Base


class Staff(Base):
    """Staff member who can be booked for the services they are assigned to."""

    __tablename__ = "staff"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)

    # Booking settings
    is_bookable = Column(Boolean, default=True, nullable=False)  # visible/hireable
    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    business = relationship("Business", back_populates="staff")
    staff_services = relationship(
        "StaffService", back_populates="staff", cascade="all, delete-orphan"
    )
    work_windows = relationship(
        "WorkWindow", back_populates="staff", cascade="all, delete-orphan"
    )

    @property
    def is_eligible(self) -> bool:
        return bool(self.is_bookable and self.is_active)

    def __repr__(self):
        return (
            f"<Staff(id={self.id}, name='{self.name}', "
            f"bookable={self.is_bookable})>"
        )
