from datetime import date, time
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.models.appointment import Appointment, AppointmentStatus
from reservo.models.business import Business
from reservo.models.service import Service
from reservo.models.staff import Staff
from reservo.models.staff_service import StaffService
from reservo.models.work_window import WorkWindow

# Fixtures commit without refreshing so no transaction stays open on the
# arranging session; an open SQLite write transaction blocks request sessions.
TARGET_DATE = date(2025, 6, 10)


async def add_work_window(
    db: AsyncSession,
    staff: Staff,
    start_time: str = "09:00",
    end_time: str = "17:00",
    start_date: date = TARGET_DATE,
    end_date: Optional[date] = None,
) -> WorkWindow:
    window = WorkWindow(
        staff_id=staff.id,
        start_date=start_date,
        end_date=end_date or start_date,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(window)
    await db.commit()
    return window


async def add_appointment(
    db: AsyncSession,
    service: Service,
    staff: Staff,
    start: time,
    end: time,
    appointment_date: date = TARGET_DATE,
    status: AppointmentStatus = AppointmentStatus.BOOKED,
) -> Appointment:
    appointment = Appointment(
        business_id=service.business_id,
        service_id=service.id,
        staff_id=staff.id,
        appointment_date=appointment_date,
        start_time=start,
        end_time=end,
        status=status.value,
        customer_name="Existing Customer",
        customer_email="existing@example.com",
    )
    db.add(appointment)
    await db.commit()
    return appointment


async def assign(db: AsyncSession, staff: Staff, service: Service, sort_order: int = 0):
    db.add(StaffService(staff_id=staff.id, service_id=service.id, sort_order=sort_order))
    await db.commit()


@pytest.fixture
async def sample_business(db: AsyncSession) -> Business:
    """Create a sample business for testing."""
    business = Business(name="Test Salon", slug="test-salon")
    db.add(business)
    await db.commit()
    return business


@pytest.fixture
async def sample_service(db: AsyncSession, sample_business: Business) -> Service:
    """Create a 30 minute service for testing."""
    service = Service(
        business_id=sample_business.id,
        name="Haircut",
        duration_minutes=30,
        price=Decimal("40.00"),
    )
    db.add(service)
    await db.commit()
    return service


@pytest.fixture
async def staff_a(db: AsyncSession, sample_business: Business, sample_service: Service) -> Staff:
    """First staff member in the service's assignment order."""
    staff = Staff(business_id=sample_business.id, name="Alex Stylist")
    db.add(staff)
    await db.commit()
    await assign(db, staff, sample_service, sort_order=0)
    return staff


@pytest.fixture
async def staff_b(db: AsyncSession, sample_business: Business, sample_service: Service) -> Staff:
    """Second staff member in the service's assignment order."""
    staff = Staff(business_id=sample_business.id, name="Blair Stylist")
    db.add(staff)
    await db.commit()
    await assign(db, staff, sample_service, sort_order=1)
    return staff


@pytest.fixture
async def working_day(db: AsyncSession, staff_a: Staff) -> WorkWindow:
    """Staff A works 09:00-17:00 on the target date."""
    return await add_work_window(db, staff_a)


@pytest.fixture
async def booked_ten_o_clock(
    db: AsyncSession, sample_service: Service, staff_a: Staff, working_day: WorkWindow
) -> Appointment:
    """Staff A is already booked 10:00-10:30 on the target date."""
    return await add_appointment(db, sample_service, staff_a, time(10, 0), time(10, 30))


@pytest.fixture
async def other_business(db: AsyncSession) -> Business:
    business = Business(name="Other Clinic", slug="other-clinic")
    db.add(business)
    await db.commit()
    return business
