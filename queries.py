"""Read-only listings: barbers and their slots"""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

import schedules
from database import store_errors
from models import Barber, Schedule


async def list_barbers(session: AsyncSession) -> List[Barber]:
    with store_errors():
        result = await session.execute(select(Barber).order_by(Barber.id))
        return list(result.scalars().all())


async def list_barber_schedule(session: AsyncSession, barber_id: int) -> List[Schedule]:
    with store_errors():
        return await schedules.list_by_barber(session, barber_id)


async def list_available_schedule(session: AsyncSession, barber_id: int) -> List[Schedule]:
    with store_errors():
        return await schedules.list_available_by_barber(session, barber_id)
