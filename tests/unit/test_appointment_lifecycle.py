"""Test appointment status transitions and rescheduling with real database interactions."""

from datetime import date, time
from uuid import uuid4

import pytest

from reservo.core.exceptions import InvalidStatusTransition, NotFound, SlotUnavailable
from reservo.models.appointment import AppointmentStatus
from reservo.schemas.appointment import AppointmentReschedule
from reservo.services.appointment import AppointmentLifecycleService
from reservo.services.availability import AvailabilityService
from reservo.services.catalog import CatalogService
from reservo.utils.validation import format_hhmm
from tests.fixtures.booking_fixtures import TARGET_DATE, add_appointment, add_work_window


async def run_lifecycle(session_factory, method, *args):
    async with session_factory() as session:
        return await getattr(AppointmentLifecycleService(session), method)(*args)


class TestStatusTransitions:
    async def test_booked_to_completed(
        self, session_factory, sample_business, booked_ten_o_clock
    ):
        appointment = await run_lifecycle(
            session_factory,
            "transition_status",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentStatus.COMPLETED,
        )

        assert appointment.status == AppointmentStatus.COMPLETED.value
        assert appointment.status_changed_at is not None

    async def test_final_states_cannot_change(
        self, session_factory, sample_business, booked_ten_o_clock
    ):
        await run_lifecycle(
            session_factory,
            "transition_status",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentStatus.CANCELLED,
        )

        with pytest.raises(InvalidStatusTransition):
            await run_lifecycle(
                session_factory,
                "transition_status",
                sample_business.id,
                booked_ten_o_clock.uuid,
                AppointmentStatus.COMPLETED,
            )

    async def test_cannot_move_back_to_booked(
        self, session_factory, sample_business, booked_ten_o_clock
    ):
        with pytest.raises(InvalidStatusTransition):
            await run_lifecycle(
                session_factory,
                "transition_status",
                sample_business.id,
                booked_ten_o_clock.uuid,
                AppointmentStatus.BOOKED,
            )

    async def test_cancelling_frees_the_slot(
        self, session_factory, sample_business, sample_service, booked_ten_o_clock
    ):
        await run_lifecycle(
            session_factory,
            "transition_status",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentStatus.CANCELLED,
        )

        async with session_factory() as session:
            service = await CatalogService(session).get_service(
                sample_business.id, sample_service.uuid
            )
            slots = await AvailabilityService(session).compute_available_slots(
                service, TARGET_DATE
            )

        assert "10:00" in [format_hhmm(value) for value in slots]

    async def test_unknown_appointment(self, session_factory, sample_business):
        with pytest.raises(NotFound):
            await run_lifecycle(
                session_factory,
                "transition_status",
                sample_business.id,
                uuid4(),
                AppointmentStatus.CANCELLED,
            )

    async def test_appointment_of_another_business_is_not_found(
        self, session_factory, other_business, booked_ten_o_clock
    ):
        with pytest.raises(NotFound):
            await run_lifecycle(
                session_factory, "get_appointment", other_business.id, booked_ten_o_clock.uuid
            )


class TestListAppointments:
    async def test_cancelled_hidden_unless_requested(
        self, db, session_factory, sample_business, sample_service, staff_a, working_day
    ):
        await add_appointment(db, sample_service, staff_a, time(9, 0), time(9, 30))
        await add_appointment(
            db,
            sample_service,
            staff_a,
            time(11, 0),
            time(11, 30),
            status=AppointmentStatus.CANCELLED,
        )

        active = await run_lifecycle(
            session_factory, "list_appointments", sample_business.id, TARGET_DATE
        )
        everything = await run_lifecycle(
            session_factory,
            "list_appointments",
            sample_business.id,
            TARGET_DATE,
            None,
            True,
        )

        assert [a.start_time for a in active] == [time(9, 0)]
        assert [a.start_time for a in everything] == [time(9, 0), time(11, 0)]

    async def test_filter_by_staff(
        self, db, session_factory, sample_business, sample_service, staff_a, staff_b
    ):
        await add_work_window(db, staff_a)
        await add_work_window(db, staff_b)
        await add_appointment(db, sample_service, staff_a, time(9, 0), time(9, 30))
        await add_appointment(db, sample_service, staff_b, time(10, 0), time(10, 30))

        only_b = await run_lifecycle(
            session_factory, "list_appointments", sample_business.id, TARGET_DATE, staff_b
        )

        assert [a.staff_id for a in only_b] == [staff_b.id]


class TestReschedule:
    async def test_moves_to_new_time_with_same_staff(
        self, session_factory, sample_business, staff_a, booked_ten_o_clock
    ):
        new_appointment = await run_lifecycle(
            session_factory,
            "reschedule",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentReschedule(date=TARGET_DATE, start_time="14:00"),
        )

        assert new_appointment.start_time == time(14, 0)
        assert new_appointment.end_time == time(14, 30)
        assert new_appointment.staff_id == staff_a.id
        assert new_appointment.rescheduled_from.uuid == booked_ten_o_clock.uuid
        assert new_appointment.customer_email == "existing@example.com"

        old = await run_lifecycle(
            session_factory, "get_appointment", sample_business.id, booked_ten_o_clock.uuid
        )
        assert old.status == AppointmentStatus.CANCELLED.value

    async def test_may_overlap_its_own_old_interval(
        self, session_factory, sample_business, booked_ten_o_clock
    ):
        new_appointment = await run_lifecycle(
            session_factory,
            "reschedule",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentReschedule(date=TARGET_DATE, start_time="10:15"),
        )

        assert new_appointment.start_time == time(10, 15)
        assert new_appointment.end_time == time(10, 45)

    async def test_taken_target_keeps_original_booking(
        self, db, session_factory, sample_business, sample_service, staff_a,
        booked_ten_o_clock,
    ):
        await add_appointment(db, sample_service, staff_a, time(14, 0), time(14, 30))

        with pytest.raises(SlotUnavailable):
            await run_lifecycle(
                session_factory,
                "reschedule",
                sample_business.id,
                booked_ten_o_clock.uuid,
                AppointmentReschedule(date=TARGET_DATE, start_time="14:00"),
            )

        old = await run_lifecycle(
            session_factory, "get_appointment", sample_business.id, booked_ten_o_clock.uuid
        )
        assert old.status == AppointmentStatus.BOOKED.value

    async def test_moves_to_other_staff_when_current_is_busy(
        self, db, session_factory, sample_business, sample_service, staff_a, staff_b,
        booked_ten_o_clock,
    ):
        await add_work_window(db, staff_b)
        await add_appointment(db, sample_service, staff_a, time(14, 0), time(14, 30))

        new_appointment = await run_lifecycle(
            session_factory,
            "reschedule",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentReschedule(date=TARGET_DATE, start_time="14:00"),
        )

        assert new_appointment.staff_id == staff_b.id

    async def test_to_another_day(
        self, db, session_factory, sample_business, staff_a, booked_ten_o_clock
    ):
        next_day = date(2025, 6, 11)
        await add_work_window(db, staff_a, start_date=next_day)

        new_appointment = await run_lifecycle(
            session_factory,
            "reschedule",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentReschedule(date=next_day, start_time="09:00"),
        )

        assert new_appointment.appointment_date == next_day

    async def test_cancelled_appointment_cannot_be_rescheduled(
        self, session_factory, sample_business, booked_ten_o_clock
    ):
        await run_lifecycle(
            session_factory,
            "transition_status",
            sample_business.id,
            booked_ten_o_clock.uuid,
            AppointmentStatus.CANCELLED,
        )

        with pytest.raises(InvalidStatusTransition):
            await run_lifecycle(
                session_factory,
                "reschedule",
                sample_business.id,
                booked_ten_o_clock.uuid,
                AppointmentReschedule(date=TARGET_DATE, start_time="14:00"),
            )
