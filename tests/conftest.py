"""
Pytest configuration and fixtures.

Tests run against a throwaway SQLite file. The engine is disposed after
every test so pooled connections never outlive their event loop.
"""

import asyncio
import datetime
import os
import tempfile

import pytest
import pytest_asyncio

_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="barber-booking-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_FILE}"
os.environ["DB_LOCK_TIMEOUT_MS"] = "15000"
os.environ["SEED_DEMO_DATA"] = "false"

from sqlmodel import SQLModel, select  # noqa: E402

from database import async_session, engine  # noqa: E402
from models import Barber, Booking, Schedule, ScheduleStatus  # noqa: E402

BARBER_ID = 5
OTHER_BARBER_ID = 6
SLOT_DATE = datetime.date(2024, 1, 10)


async def reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    async with async_session() as session:
        async with session.begin():
            session.add_all([Barber(id=BARBER_ID, name="Sam"), Barber(id=OTHER_BARBER_ID, name="Riley")])
            await session.flush()
            # Inserted out of order on purpose, listings must sort them
            for hour in (12, 10, 11):
                session.add(Schedule(barber_id=BARBER_ID, date=SLOT_DATE, time=datetime.time(hour)))
            session.add(Schedule(barber_id=BARBER_ID, date=SLOT_DATE - datetime.timedelta(days=1), time=datetime.time(15)))
            session.add(Schedule(barber_id=OTHER_BARBER_ID, date=SLOT_DATE, time=datetime.time(10)))


async def _reset_for_client():
    await reset_database()
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    await reset_database()
    yield
    await engine.dispose()


@pytest.fixture
def call():
    """Run one booking operation on its own session, like one request would."""

    async def _call(operation, *args):
        async with async_session() as session:
            return await operation(session, *args)

    return _call


@pytest.fixture
def slot_id():
    async def _slot_id(hour, barber_id=BARBER_ID, slot_date=SLOT_DATE):
        async with async_session() as session:
            result = await session.execute(
                select(Schedule.id).where(
                    Schedule.barber_id == barber_id,
                    Schedule.date == slot_date,
                    Schedule.time == datetime.time(hour),
                )
            )
            return result.scalar_one()

    return _slot_id


@pytest.fixture
def snapshot():
    """Current schedules and bookings, for assertions."""

    async def _snapshot():
        async with async_session() as session:
            slots = (await session.execute(select(Schedule))).scalars().all()
            rows = (await session.execute(select(Booking))).scalars().all()
            return {s.id: s.status for s in slots}, list(rows)

    return _snapshot


@pytest.fixture
def assert_consistent(snapshot):
    """A slot is Reserved iff exactly one booking references it."""

    async def _check():
        statuses, rows = await snapshot()
        refs = {}
        for booking in rows:
            refs[booking.schedule_id] = refs.get(booking.schedule_id, 0) + 1
        for schedule_id, status in statuses.items():
            if status == ScheduleStatus.RESERVED.value:
                assert refs.get(schedule_id) == 1, f"schedule {schedule_id} reserved without one booking"
            else:
                assert schedule_id not in refs, f"schedule {schedule_id} available but booked"
        assert len({b.user_uid for b in rows}) == len(rows)
        return statuses, rows

    return _check


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from main import app

    asyncio.run(_reset_for_client())
    with TestClient(app) as test_client:
        yield test_client
