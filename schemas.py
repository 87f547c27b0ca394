from datetime import date, time
from typing import Optional, Union

from pydantic import BaseModel


# Pydantic Schemas for Request/Response
class BarberOut(BaseModel):
    id: int
    name: str


class ScheduleOut(BaseModel):
    id: int
    barber_id: int
    date: date
    time: time
    status: str


class BookingIn(BaseModel):
    # Everything optional here: required-field checks belong to the booking core
    barber_id: Optional[Union[int, str]] = None
    date: Optional[str] = None
    time: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None


class BookingDetails(BaseModel):
    barber: str
    date: date
    time: time
    name: str
    phone_number: str


class MessageOut(BaseModel):
    message: str
    schedule_id: Optional[int] = None


class ErrorOut(BaseModel):
    error: str
    detail: str
