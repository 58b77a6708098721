from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AvailabilityResponse(BaseModel):
    service_id: UUID
    date: date
    staff_id: Optional[UUID] = None
    slots: List[str] = Field(default_factory=list, examples=[["09:00", "09:30"]])
