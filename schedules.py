"""Schedule store - slot lookups and the status write primitive"""

import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from models import Schedule, ScheduleStatus


def _ordered(statement):
    return statement.order_by(Schedule.date, Schedule.time, Schedule.id)


async def list_by_barber(session: AsyncSession, barber_id: int) -> List[Schedule]:
    statement = _ordered(select(Schedule).where(Schedule.barber_id == barber_id))
    result = await session.execute(statement)
    return list(result.scalars().all())


async def list_available_by_barber(session: AsyncSession, barber_id: int) -> List[Schedule]:
    statement = _ordered(
        select(Schedule).where(
            Schedule.barber_id == barber_id,
            Schedule.status == ScheduleStatus.AVAILABLE.value,
        )
    )
    result = await session.execute(statement)
    return list(result.scalars().all())


async def find_slot(
    session: AsyncSession,
    barber_id: int,
    slot_date: datetime.date,
    slot_time: datetime.time,
    required_status: Optional[ScheduleStatus] = None,
    for_update: bool = False,
) -> Optional[Schedule]:
    """
    Find the slot of a barber at a given date and time.

    With ``required_status`` only a slot in that state matches. With
    ``for_update`` the row stays locked until the transaction ends; a
    concurrent transaction that changed the status first makes the
    filtered lookup come back empty.
    """
    statement = select(Schedule).where(
        Schedule.barber_id == barber_id,
        Schedule.date == slot_date,
        Schedule.time == slot_time,
    )
    if required_status is not None:
        statement = statement.where(Schedule.status == required_status.value)
    if for_update:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(statement)
    return result.scalars().first()


async def lock_slots(session: AsyncSession, schedule_ids: Iterable[int]) -> Dict[int, Schedule]:
    """Lock several slots at once, always in id order, and return them freshly read."""
    statement = (
        select(Schedule)
        .where(Schedule.id.in_(sorted(set(schedule_ids))))
        .order_by(Schedule.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(statement)
    return {slot.id: slot for slot in result.scalars().all()}


async def set_status(session: AsyncSession, schedule_id: int, status: ScheduleStatus) -> None:
    # Only called inside an atomic() block next to the matching booking write
    await session.execute(
        update(Schedule).where(Schedule.id == schedule_id).values(status=status.value)
    )
