import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reservo.core.database import Base


class Customer(Base):
    """Customer record, linked to appointments as an enrichment of the raw contact fields."""

    __tablename__ = "customers"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    business_id = Column(
        Integer, ForeignKey("businesses.id"), nullable=False, index=True
    )

    # Contact information
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("business_id", "email", name="uq_customer_business_email"),
    )

    # Relationships
    business = relationship("Business")
    appointments = relationship("Appointment", back_populates="customer")

    def __repr__(self):
        return (
            f"<Customer(id={self.id}, name='{self.name}', email='{self.email}')>"
        )
