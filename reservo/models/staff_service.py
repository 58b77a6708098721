import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reservo.core.database import Base


class StaffService(Base):
    """Eligibility of a staff member for a service.

    ``sort_order`` (then ``id``) is the service's staff-assignment order, which
    decides who is picked when a customer has no staff preference.
    """

    __tablename__ = "staff_services"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    sort_order = Column(Integer, default=0, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("staff_id", "service_id", name="uq_staff_service"),
    )

    # Relationships
    staff = relationship("Staff", back_populates="staff_services")
    service = relationship("Service", back_populates="staff_services")

    def __repr__(self):
        return (
            f"<StaffService(id={self.id}, staff_id={self.staff_id}, "
            f"service_id={self.service_id}, order={self.sort_order})>"
        )
