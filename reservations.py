"""
Booking operations.

Every mutation runs as a single transaction over the schedules and bookings
tables. The schedule row is locked before its fate is decided, so two
requests for the same slot are applied one after the other and the loser
sees the winner's committed state. A slot is Reserved exactly when one
booking row points at it; both facts are always written together.
"""

import datetime
import logging
from typing import Any, Dict, NamedTuple, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

import bookings
import schedules
from database import atomic, store_errors
from errors import ConflictError, NotFoundError, ValidationError
from models import Barber, Booking, Schedule, ScheduleStatus

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields"


class BookingRequest(NamedTuple):
    user_uid: str
    barber_id: int
    date: datetime.date
    time: datetime.time
    name: str
    phone_number: str


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_barber_id(value: Union[int, str]) -> int:
    try:
        barber_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid barber id: {value!r}")
    if barber_id < 1:
        raise ValidationError(f"Invalid barber id: {value!r}")
    return barber_id


def _parse_date(value: Union[datetime.date, str]) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD")


def _parse_time(value: Union[datetime.time, str]) -> datetime.time:
    if isinstance(value, datetime.time):
        return value.replace(tzinfo=None)
    try:
        return datetime.time.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time: {value!r}, expected HH:MM")


def validate_booking_fields(
    user_uid: Optional[str],
    barber_id: Any,
    date: Any,
    time: Any,
    name: Optional[str],
    phone_number: Optional[str],
) -> BookingRequest:
    """Check that every field is present and well formed, and normalize it."""
    if any(_blank(v) for v in (user_uid, barber_id, date, time, name, phone_number)):
        raise ValidationError(MISSING_FIELDS)

    return BookingRequest(
        user_uid=user_uid.strip(),
        barber_id=_parse_barber_id(barber_id),
        date=_parse_date(date),
        time=_parse_time(time),
        name=name.strip(),
        phone_number=phone_number.strip(),
    )


def _require_user(user_uid: Optional[str]) -> str:
    if _blank(user_uid):
        raise ValidationError(MISSING_FIELDS)
    return user_uid.strip()


async def create_booking(
    session: AsyncSession,
    user_uid: str,
    barber_id: Any,
    date: Any,
    time: Any,
    name: str,
    phone_number: str,
) -> Booking:
    request = validate_booking_fields(user_uid, barber_id, date, time, name, phone_number)

    async with atomic(session):
        slot = await schedules.find_slot(
            session,
            request.barber_id,
            request.date,
            request.time,
            required_status=ScheduleStatus.AVAILABLE,
            for_update=True,
        )
        if slot is None:
            raise NotFoundError("No available schedule found")

        if await bookings.find_by_user(session, request.user_uid) is not None:
            raise ConflictError("User already has a reservation")

        booking = await bookings.insert(
            session, slot.id, request.user_uid, request.name, request.phone_number
        )
        await schedules.set_status(session, slot.id, ScheduleStatus.RESERVED)

    logger.info(f"Booking {booking.id} created: user={request.user_uid} schedule={slot.id}")
    return booking


async def read_booking(session: AsyncSession, user_uid: str) -> Dict[str, Any]:
    user_uid = _require_user(user_uid)

    statement = (
        select(Barber.name, Schedule.date, Schedule.time, Booking.name, Booking.phone_number)
        .select_from(Booking)
        .join(Schedule, Booking.schedule_id == Schedule.id)
        .join(Barber, Schedule.barber_id == Barber.id)
        .where(Booking.user_uid == user_uid)
    )
    with store_errors():
        result = await session.execute(statement)
        row = result.first()

    if row is None:
        raise NotFoundError("No reservation found")

    barber, slot_date, slot_time, name, phone_number = row
    return {
        "barber": barber,
        "date": slot_date,
        "time": slot_time,
        "name": name,
        "phone_number": phone_number,
    }


async def update_booking(
    session: AsyncSession,
    user_uid: str,
    barber_id: Any,
    date: Any,
    time: Any,
    name: str,
    phone_number: str,
) -> Booking:
    """
    Change the contact details of the user's booking and, when a different
    slot is given, move it there. Moving frees the old slot and reserves
    the new one in the same transaction.
    """
    request = validate_booking_fields(user_uid, barber_id, date, time, name, phone_number)

    async with atomic(session):
        booking = await bookings.find_by_user(session, request.user_uid, for_update=True)
        if booking is None:
            raise NotFoundError("No reservation found for this user")

        target = await schedules.find_slot(session, request.barber_id, request.date, request.time)
        if target is None:
            raise NotFoundError("No available schedule found")

        old_schedule_id = booking.schedule_id

        if target.id == old_schedule_id:
            await bookings.update_fields(session, booking, request.name, request.phone_number)
        else:
            # Lock both slots in id order so opposite moves cannot deadlock
            locked = await schedules.lock_slots(session, [old_schedule_id, target.id])
            target = locked.get(target.id)
            if target is None:
                raise NotFoundError("No available schedule found")
            if target.status == ScheduleStatus.RESERVED.value:
                raise ConflictError("Selected schedule is reserved")

            await bookings.reassign(session, booking, target.id)
            await bookings.update_fields(session, booking, request.name, request.phone_number)
            await schedules.set_status(session, old_schedule_id, ScheduleStatus.AVAILABLE)
            await schedules.set_status(session, target.id, ScheduleStatus.RESERVED)

    if target.id == old_schedule_id:
        logger.info(f"Booking {booking.id} contact details updated: user={request.user_uid}")
    else:
        logger.info(
            f"Booking {booking.id} moved: user={request.user_uid} "
            f"schedule {old_schedule_id} -> {target.id}"
        )
    return booking


async def cancel_booking(session: AsyncSession, user_uid: str) -> int:
    """Delete the user's booking and free its slot. Returns the freed schedule id."""
    user_uid = _require_user(user_uid)

    async with atomic(session):
        schedule_id = await bookings.delete_by_user(session, user_uid)
        if schedule_id is None:
            raise NotFoundError("No reservation found for this user")
        await schedules.set_status(session, schedule_id, ScheduleStatus.AVAILABLE)

    logger.info(f"Booking cancelled: user={user_uid} schedule={schedule_id}")
    return schedule_id
