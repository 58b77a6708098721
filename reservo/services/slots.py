"""Interval primitives and the slot generator.

All intervals are half-open ``[start, end)`` wall-clock ranges within a single
day. ``intervals_overlap`` is the one overlap test used everywhere: slot
generation, staff lookup, the commit re-check and work-window authoring.
"""

from dataclasses import dataclass
from datetime import time
from typing import Iterable, Optional, Sequence

import structlog

from reservo.core.config import settings
from reservo.core.exceptions import InvalidInput
from reservo.utils.validation import MINUTES_PER_DAY, format_hhmm, from_minutes, to_minutes

logger = structlog.get_logger(__name__)


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap: touching boundaries do not overlap."""
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True, order=True)
class TimeInterval:
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")

    @classmethod
    def from_start(cls, start: time, duration_minutes: int) -> "TimeInterval":
        """Interval of ``duration_minutes`` beginning at ``start``.

        Raises:
            InvalidInput: if the duration is not positive or the interval would cross midnight
        """
        if duration_minutes <= 0:
            raise InvalidInput("Duration must be a positive number of minutes")
        end_minutes = to_minutes(start) + duration_minutes
        if end_minutes >= MINUTES_PER_DAY:
            raise InvalidInput(
                f"Interval starting at {format_hhmm(start)} would cross midnight"
            )
        return cls(start, from_minutes(end_minutes))

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)

    def overlaps(self, other: "TimeInterval") -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self):
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


# A candidate slot carries no identity beyond its bounds
CandidateSlot = TimeInterval


def overlaps_any(interval: TimeInterval, others: Iterable[TimeInterval]) -> bool:
    return any(interval.overlaps(other) for other in others)


def is_interval_free(
    interval: TimeInterval,
    working_intervals: Iterable[TimeInterval],
    booked_intervals: Sequence[TimeInterval],
) -> bool:
    """Whether one working interval contains ``interval`` and nothing booked overlaps it."""
    if overlaps_any(interval, booked_intervals):
        return False
    return any(working.contains(interval) for working in working_intervals)


def resolve_granularity(service=None, business=None) -> int:
    """Slot step in minutes: service override, then business override, then global setting."""
    for owner in (service, business):
        value = getattr(owner, "slot_granularity_minutes", None) if owner else None
        if value:
            return int(value)
    return settings.SLOT_GRANULARITY_MINUTES


class SlotGenerator:
    """Enumerates bookable start times inside one working interval."""

    def __init__(self, granularity_minutes: Optional[int] = None):
        granularity = (
            settings.SLOT_GRANULARITY_MINUTES
            if granularity_minutes is None
            else granularity_minutes
        )
        if granularity <= 0:
            raise InvalidInput("Slot granularity must be a positive number of minutes")
        self.granularity_minutes = granularity

    def generate(
        self,
        working: TimeInterval,
        booked: Sequence[TimeInterval],
        duration_minutes: int,
    ) -> list[CandidateSlot]:
        """
        Candidate slots for a service of ``duration_minutes``.

        Candidates start at ``working.start`` and advance by the granularity up
        to ``working.end - duration``. A candidate is kept when it lies fully
        inside the working interval and overlaps no booked interval.

        Returns:
            Accepted slots ordered by start time
        """
        if duration_minutes <= 0:
            raise InvalidInput("Service duration must be a positive number of minutes")

        working_start = to_minutes(working.start)
        working_end = to_minutes(working.end)
        last_start = working_end - duration_minutes

        slots = []
        candidate_start = working_start
        while candidate_start <= last_start:
            candidate = TimeInterval(
                from_minutes(candidate_start),
                from_minutes(candidate_start + duration_minutes),
            )
            if working.contains(candidate) and not overlaps_any(candidate, booked):
                slots.append(candidate)
            candidate_start += self.granularity_minutes

        logger.debug(
            "Generated slots",
            working=str(working),
            duration_minutes=duration_minutes,
            granularity_minutes=self.granularity_minutes,
            booked=len(booked),
            accepted=len(slots),
        )
        return slots
