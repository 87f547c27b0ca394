"""Booking store - one row per reserved slot, owned by the user who created it"""

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from errors import ConflictError
from models import Booking


def _violates_user_constraint(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint, SQLite names the column
    message = str(exc.orig)
    return "unique_booking_user" in message or "bookings.user_uid" in message

async def find_by_user(session: AsyncSession, user_uid: str, for_update: bool = False) -> Optional[Booking]:
    statement = select(Booking).where(Booking.user_uid == user_uid)
    if for_update:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(statement)
    return result.scalars().first()


async def insert(session: AsyncSession, schedule_id: int, user_uid: str, name: str, phone_number: str) -> Booking:
    booking = Booking(schedule_id=schedule_id, user_uid=user_uid, name=name, phone_number=phone_number)
    session.add(booking)
    try:
        await session.flush()
    except IntegrityError as exc:
        if _violates_user_constraint(exc):
            raise ConflictError("User already has a reservation") from exc
        raise ConflictError("Schedule is already booked") from exc
    return booking


async def update_fields(session: AsyncSession, booking: Booking, name: str, phone_number: str) -> Booking:
    booking.name = name
    booking.phone_number = phone_number
    await session.flush()
    return booking


async def reassign(session: AsyncSession, booking: Booking, schedule_id: int) -> Booking:
    booking.schedule_id = schedule_id
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError("Selected schedule is reserved") from exc
    return booking


async def delete_by_user(session: AsyncSession, user_uid: str) -> Optional[int]:
    """Remove the user's booking and return the schedule id it held, or None."""
    booking = await find_by_user(session, user_uid, for_update=True)
    if booking is None:
        return None
    schedule_id = booking.schedule_id
    await session.delete(booking)
    await session.flush()
    return schedule_id
