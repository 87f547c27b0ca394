from enum import Enum
from typing import Optional
import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, UniqueConstraint


class ScheduleStatus(str, Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"


class Barber(SQLModel, table=True):
    __tablename__ = "barbers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str


class Schedule(SQLModel, table=True):
    __tablename__ = "schedules"
    __table_args__ = (
        # One slot per barber and point in time
        UniqueConstraint("barber_id", "date", "time", name="unique_barber_slot"),
        CheckConstraint("status IN ('Available', 'Reserved')", name="valid_schedule_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    barber_id: int = Field(foreign_key="barbers.id", index=True)
    date: datetime.date
    time: datetime.time
    status: str = Field(default=ScheduleStatus.AVAILABLE.value, index=True)


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # CRITICAL: Database-level protection against double booking
        UniqueConstraint("schedule_id", name="unique_booking_schedule"),
        # One active reservation per user
        UniqueConstraint("user_uid", name="unique_booking_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    schedule_id: int = Field(foreign_key="schedules.id")
    user_uid: str
    name: str
    phone_number: str
