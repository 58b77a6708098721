from datetime import date, timedelta
from typing import Iterable, Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.core.database import begin_exclusive
from reservo.core.exceptions import (
    InvalidInput,
    NotFound,
    ScheduleDataError,
    WorkWindowConflict,
)
from reservo.models.staff import Staff
from reservo.models.work_window import WorkWindow
from reservo.schemas.work_window import (
    SkippedRun,
    WorkWindowBulkCreate,
    WorkWindowBulkResult,
    WorkWindowCreate,
    WorkWindowResponse,
    WorkWindowUpdate,
)
from reservo.services.slots import TimeInterval, intervals_overlap
from reservo.utils.validation import parse_hhmm

logger = structlog.get_logger(__name__)


class ScheduleExpander:
    """Turns stored work windows into concrete working intervals for one date."""

    def expand(
        self, staff_id: int, target_date: date, windows: Iterable[WorkWindow]
    ) -> list[TimeInterval]:
        """
        Working intervals of ``staff_id`` on ``target_date``.

        A window applies when ``start_date <= target_date <= end_date``,
        whatever the weekday. Split shifts come back as separate, unmerged
        intervals ordered by start.

        Raises:
            ScheduleDataError: if an applicable stored window cannot be interpreted
        """
        intervals = []
        for window in windows:
            if window.start_date is None or window.end_date is None:
                raise ScheduleDataError(
                    f"Work window {window.id} has no date range", staff_id=staff_id
                )
            if not window.applies_on(target_date):
                continue
            try:
                intervals.append(
                    TimeInterval(
                        parse_hhmm(window.start_time), parse_hhmm(window.end_time)
                    )
                )
            except ValueError as e:
                raise ScheduleDataError(
                    f"Work window {window.id} has malformed hours: {e}",
                    staff_id=staff_id,
                ) from e
        return sorted(intervals)


class WorkWindowService:
    """Read and write access to staff work windows with conflict validation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.expander = ScheduleExpander()

    async def get_windows_for_date(
        self, staff_id: int, target_date: date
    ) -> list[WorkWindow]:
        query = (
            select(WorkWindow)
            .where(
                and_(
                    WorkWindow.staff_id == staff_id,
                    WorkWindow.start_date <= target_date,
                    WorkWindow.end_date >= target_date,
                )
            )
            .order_by(WorkWindow.start_time, WorkWindow.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_working_intervals(
        self, staff_id: int, target_date: date
    ) -> list[TimeInterval]:
        windows = await self.get_windows_for_date(staff_id, target_date)
        return self.expander.expand(staff_id, target_date, windows)

    async def list_windows(
        self, staff: Staff, active_from: Optional[date] = None
    ) -> list[WorkWindow]:
        query = select(WorkWindow).where(WorkWindow.staff_id == staff.id)
        if active_from is not None:
            query = query.where(WorkWindow.end_date >= active_from)
        query = query.order_by(WorkWindow.start_date, WorkWindow.start_time)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_window(self, staff: Staff, window_uuid) -> WorkWindow:
        result = await self.db.execute(
            select(WorkWindow).where(
                and_(WorkWindow.staff_id == staff.id, WorkWindow.uuid == window_uuid)
            )
        )
        window = result.scalar_one_or_none()
        if not window:
            raise NotFound("Work window not found")
        return window

    async def create_window(self, staff: Staff, data: WorkWindowCreate) -> WorkWindow:
        """Create a window, rejecting it when it overlaps an existing one."""
        await begin_exclusive(self.db)
        await self._ensure_no_conflict(
            staff.id, data.start_date, data.end_date, data.start_time, data.end_time
        )

        window = WorkWindow(
            staff_id=staff.id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        self.db.add(window)
        await self.db.flush()

        logger.info(
            "Work window created",
            staff_id=staff.id,
            window_id=window.id,
            start_date=str(window.start_date),
            end_date=str(window.end_date),
            hours=f"{window.start_time}-{window.end_time}",
        )
        return window

    async def update_window(
        self, window: WorkWindow, data: WorkWindowUpdate
    ) -> WorkWindow:
        """Apply a partial update; the window itself is excluded from the conflict check."""
        await begin_exclusive(self.db)
        merged = {
            "start_date": window.start_date,
            "end_date": window.end_date,
            "start_time": window.start_time,
            "end_time": window.end_time,
        }
        merged.update(data.model_dump(exclude_unset=True, exclude_none=True))
        try:
            validated = WorkWindowCreate(**merged)
        except ValueError as e:
            raise InvalidInput(str(e))

        await self._ensure_no_conflict(
            window.staff_id,
            validated.start_date,
            validated.end_date,
            validated.start_time,
            validated.end_time,
            exclude_id=window.id,
        )

        for field, value in validated.model_dump().items():
            setattr(window, field, value)
        await self.db.flush()

        logger.info("Work window updated", window_id=window.id, **merged)
        return window

    async def delete_window(self, window: WorkWindow) -> None:
        await begin_exclusive(self.db)
        await self.db.delete(window)
        await self.db.flush()
        logger.info("Work window deleted", window_id=window.id, staff_id=window.staff_id)

    async def create_windows_for_weekdays(
        self, staff: Staff, data: WorkWindowBulkCreate
    ) -> WorkWindowBulkResult:
        """
        Create windows for the selected weekdays of a date range.

        Consecutive selected dates are grouped into one window each. Runs that
        conflict with existing windows are skipped and reported.

        Raises:
            InvalidInput: if no weekday is selected or the range has no selected day
            WorkWindowConflict: if every run conflicts
        """
        if not data.weekdays:
            raise InvalidInput("Select at least one weekday")

        selected = set(data.weekdays)
        dates = []
        current = data.start_date
        while current <= data.end_date:
            if current.weekday() in selected:
                dates.append(current)
            current += timedelta(days=1)

        if not dates:
            raise InvalidInput("No selected weekday falls within the date range")

        await begin_exclusive(self.db)
        result = WorkWindowBulkResult()
        for run_start, run_end in _consecutive_runs(dates):
            conflict = await self._find_conflict(
                staff.id, run_start, run_end, data.start_time, data.end_time
            )
            if conflict is not None:
                logger.info(
                    "Skipping conflicting work window run",
                    staff_id=staff.id,
                    run_start=str(run_start),
                    run_end=str(run_end),
                    conflicting_window_id=conflict.id,
                )
                result.skipped.append(SkippedRun(start_date=run_start, end_date=run_end))
                continue

            window = WorkWindow(
                staff_id=staff.id,
                start_date=run_start,
                end_date=run_end,
                start_time=data.start_time,
                end_time=data.end_time,
            )
            self.db.add(window)
            await self.db.flush()
            result.created.append(WorkWindowResponse.model_validate(window))

        if not result.created:
            raise WorkWindowConflict(
                "Every selected period conflicts with an existing work window",
                details={"skipped": len(result.skipped)},
            )

        logger.info(
            "Work windows created in bulk",
            staff_id=staff.id,
            created=len(result.created),
            skipped=len(result.skipped),
        )
        return result

    async def _ensure_no_conflict(
        self,
        staff_id: int,
        start_date: date,
        end_date: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        conflict = await self._find_conflict(
            staff_id, start_date, end_date, start_time, end_time, exclude_id
        )
        if conflict is not None:
            raise WorkWindowConflict(
                "Work window overlaps an existing window "
                f"({conflict.start_date}..{conflict.end_date} "
                f"{conflict.start_time}-{conflict.end_time})",
                details={"conflicting_window_uuid": str(conflict.uuid)},
            )

    async def _find_conflict(
        self,
        staff_id: int,
        start_date: date,
        end_date: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[WorkWindow]:
        """First window of the staff member overlapping in both date range and hours."""
        query = select(WorkWindow).where(
            and_(
                WorkWindow.staff_id == staff_id,
                WorkWindow.start_date <= end_date,
                WorkWindow.end_date >= start_date,
            )
        )
        if exclude_id is not None:
            query = query.where(WorkWindow.id != exclude_id)
        result = await self.db.execute(query.order_by(WorkWindow.start_date))

        new_start, new_end = parse_hhmm(start_time), parse_hhmm(end_time)
        for existing in result.scalars().all():
            try:
                existing_start = parse_hhmm(existing.start_time)
                existing_end = parse_hhmm(existing.end_time)
            except ValueError:
                # Malformed rows surface as ScheduleDataError at read time
                logger.warning(
                    "Ignoring malformed work window in conflict check",
                    window_id=existing.id,
                    staff_id=staff_id,
                )
                continue
            if intervals_overlap(new_start, new_end, existing_start, existing_end):
                return existing
        return None


def _consecutive_runs(dates: list[date]) -> list[tuple[date, date]]:
    runs = []
    run_start = previous = dates[0]
    for current in dates[1:]:
        if current != previous + timedelta(days=1):
            runs.append((run_start, previous))
            run_start = current
        previous = current
    runs.append((run_start, previous))
    return runs
