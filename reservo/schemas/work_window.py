import enum
from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reservo.utils.validation import format_hhmm, parse_hhmm


class WeekDay(enum.IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


def _normalize_hhmm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return format_hhmm(parse_hhmm(value))


class WorkWindowBase(BaseModel):
    start_date: date
    end_date: date
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["17:00"])

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_hhmm(cls, v):
        return _normalize_hhmm(v)

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class WorkWindowCreate(WorkWindowBase):
    pass


class WorkWindowUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_hhmm(cls, v):
        return _normalize_hhmm(v)


class WorkWindowBulkCreate(WorkWindowBase):
    """Same daily hours on the selected weekdays of a date range."""

    weekdays: List[WeekDay] = Field(
        default_factory=lambda: [
            WeekDay.MONDAY,
            WeekDay.TUESDAY,
            WeekDay.WEDNESDAY,
            WeekDay.THURSDAY,
            WeekDay.FRIDAY,
        ]
    )


class WorkWindowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: UUID
    start_date: date
    end_date: date
    start_time: str
    end_time: str


class SkippedRun(BaseModel):
    start_date: date
    end_date: date
    reason: str = "work_window_conflict"


class WorkWindowBulkResult(BaseModel):
    created: List[WorkWindowResponse] = Field(default_factory=list)
    skipped: List[SkippedRun] = Field(default_factory=list)
