from datetime import date, time

import pytest

from reservo.core.exceptions import ScheduleDataError
from reservo.models.work_window import WorkWindow
from reservo.services.schedule import ScheduleExpander, _consecutive_runs
from reservo.services.slots import TimeInterval

TUESDAY = date(2025, 6, 10)


def window(start_time, end_time, start_date=TUESDAY, end_date=TUESDAY, id=1):
    return WorkWindow(
        id=id,
        staff_id=7,
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
    )


class TestScheduleExpander:
    def test_no_windows_means_no_intervals(self):
        assert ScheduleExpander().expand(7, TUESDAY, []) == []

    def test_window_applies_inside_date_range_regardless_of_weekday(self):
        long_range = window("09:00", "17:00", date(2025, 6, 1), date(2025, 6, 30))

        for day in (date(2025, 6, 1), TUESDAY, date(2025, 6, 15), date(2025, 6, 30)):
            assert ScheduleExpander().expand(7, day, [long_range]) == [
                TimeInterval(time(9, 0), time(17, 0))
            ]

    def test_window_outside_date_range_is_ignored(self):
        june = window("09:00", "17:00", date(2025, 6, 1), date(2025, 6, 9))

        assert ScheduleExpander().expand(7, TUESDAY, [june]) == []

    def test_split_shift_returned_unmerged_and_ordered(self):
        afternoon = window("13:00", "17:00", id=2)
        morning = window("09:00", "12:00", id=1)

        intervals = ScheduleExpander().expand(7, TUESDAY, [afternoon, morning])

        assert intervals == [
            TimeInterval(time(9, 0), time(12, 0)),
            TimeInterval(time(13, 0), time(17, 0)),
        ]

    def test_adjacent_windows_are_not_merged(self):
        intervals = ScheduleExpander().expand(
            7, TUESDAY, [window("09:00", "12:00"), window("12:00", "15:00", id=2)]
        )

        assert len(intervals) == 2

    @pytest.mark.parametrize(
        "start_time,end_time",
        [("9am", "17:00"), ("09:00", "24:00"), ("17:00", "09:00"), ("10:00", "10:00")],
    )
    def test_malformed_hours_raise_schedule_data_error(self, start_time, end_time):
        with pytest.raises(ScheduleDataError) as exc_info:
            ScheduleExpander().expand(7, TUESDAY, [window(start_time, end_time)])

        assert exc_info.value.staff_id == 7
        assert exc_info.value.reason == "schedule_data_error"

    def test_missing_dates_raise_schedule_data_error(self):
        broken = window("09:00", "17:00", start_date=None)

        with pytest.raises(ScheduleDataError):
            ScheduleExpander().expand(7, TUESDAY, [broken])


class TestConsecutiveRuns:
    def test_groups_consecutive_dates(self):
        dates = [
            date(2025, 6, 2),
            date(2025, 6, 3),
            date(2025, 6, 4),
            date(2025, 6, 9),
            date(2025, 6, 10),
        ]

        assert _consecutive_runs(dates) == [
            (date(2025, 6, 2), date(2025, 6, 4)),
            (date(2025, 6, 9), date(2025, 6, 10)),
        ]

    def test_single_date(self):
        assert _consecutive_runs([TUESDAY]) == [(TUESDAY, TUESDAY)]
