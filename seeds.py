import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from database import atomic
from models import Barber, Schedule, ScheduleStatus

DEMO_BARBERS = ["Alex", "Brook", "Casey"]

# Hourly slots, 10:00 through 17:00
DEMO_HOURS = range(10, 18)
DEMO_DAYS = 2


async def seed_demo_data(session: AsyncSession, start: Optional[datetime.date] = None) -> int:
    """Insert demo barbers and their open slots. Skipped if barbers exist."""
    start = start or datetime.date.today()

    async with atomic(session):
        result = await session.execute(select(func.count()).select_from(Barber))
        if result.scalar_one() > 0:
            return 0

        barbers = [Barber(name=name) for name in DEMO_BARBERS]
        session.add_all(barbers)
        await session.flush()

        slots = [
            Schedule(
                barber_id=barber.id,
                date=start + datetime.timedelta(days=day),
                time=datetime.time(hour=hour),
                status=ScheduleStatus.AVAILABLE.value,
            )
            for day in range(DEMO_DAYS)
            for hour in DEMO_HOURS
            for barber in barbers
        ]
        session.add_all(slots)

    return len(slots)
