import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import config
import queries
import reservations
from database import init_db, close_db, get_session, async_session, server_version
from errors import BookingError, ValidationError
from schemas import BarberOut, BookingDetails, BookingIn, ErrorOut, MessageOut, ScheduleOut
from seeds import seed_demo_data

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "transient": status.HTTP_503_SERVICE_UNAVAILABLE,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_RESPONSES = {code: {"model": ErrorOut} for code in set(STATUS_BY_KIND.values())}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if config.SEED_DEMO_DATA:
        async with async_session() as session:
            created = await seed_demo_data(session)
        if created:
            logger.info(f"Seeded {created} demo schedules")
    logger.info(f"Connected to database: {await server_version()}")
    yield
    await close_db()


app = FastAPI(title="Barber Shop Booking System", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500 and not exc.retryable:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")

    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.kind, "detail": exc.message},
        headers=headers,
    )


def get_user_uid(x_user_uid: Optional[str] = Header(default=None)) -> str:
    # Set by the upstream token verifier, trusted as-is
    if not x_user_uid or not x_user_uid.strip():
        raise ValidationError("Missing user identity")
    return x_user_uid.strip()


# --- Barbers and schedules (read-only) ---
@app.get("/barbers", response_model=List[BarberOut], responses=ERROR_RESPONSES)
async def get_barbers(session: AsyncSession = Depends(get_session)):
    return await queries.list_barbers(session)


@app.get("/barbers/{barber_id}/schedule", response_model=List[ScheduleOut], responses=ERROR_RESPONSES)
async def get_barber_schedule(barber_id: int, session: AsyncSession = Depends(get_session)):
    return await queries.list_barber_schedule(session, barber_id)


@app.get("/barbers/{barber_id}/schedule/available", response_model=List[ScheduleOut], responses=ERROR_RESPONSES)
async def get_available_schedule(barber_id: int, session: AsyncSession = Depends(get_session)):
    return await queries.list_available_schedule(session, barber_id)


# --- Bookings ---
@app.post("/booking/create", response_model=MessageOut, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_booking(
    body: BookingIn,
    user_uid: str = Depends(get_user_uid),
    session: AsyncSession = Depends(get_session),
):
    booking = await reservations.create_booking(
        session, user_uid, body.barber_id, body.date, body.time, body.name, body.phone_number
    )
    return MessageOut(message="Booking created successfully", schedule_id=booking.schedule_id)


@app.get("/booking/read", response_model=BookingDetails, responses=ERROR_RESPONSES)
async def read_booking(
    user_uid: str = Depends(get_user_uid),
    session: AsyncSession = Depends(get_session),
):
    return await reservations.read_booking(session, user_uid)


@app.put("/booking/update", response_model=MessageOut, responses=ERROR_RESPONSES)
async def update_booking(
    body: BookingIn,
    user_uid: str = Depends(get_user_uid),
    session: AsyncSession = Depends(get_session),
):
    booking = await reservations.update_booking(
        session, user_uid, body.barber_id, body.date, body.time, body.name, body.phone_number
    )
    return MessageOut(message="Booking updated successfully", schedule_id=booking.schedule_id)


@app.delete("/booking/delete", response_model=MessageOut, responses=ERROR_RESPONSES)
async def cancel_booking(
    user_uid: str = Depends(get_user_uid),
    session: AsyncSession = Depends(get_session),
):
    schedule_id = await reservations.cancel_booking(session, user_uid)
    return MessageOut(message="Booking cancelled successfully", schedule_id=schedule_id)
