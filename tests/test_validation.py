import datetime

import pytest

from errors import ValidationError
from reservations import validate_booking_fields


def test_normalizes_fields():
    request = validate_booking_fields(" u1 ", "5", "2024-01-10", "10:00", " Jo ", "555-1111")

    assert request.user_uid == "u1"
    assert request.barber_id == 5
    assert request.date == datetime.date(2024, 1, 10)
    assert request.time == datetime.time(10, 0)
    assert request.name == "Jo"
    assert request.phone_number == "555-1111"


def test_accepts_seconds_in_time():
    request = validate_booking_fields("u1", 5, "2024-01-10", "10:30:00", "Jo", "555-1111")
    assert request.time == datetime.time(10, 30)


@pytest.mark.parametrize(
    "fields",
    [
        (None, 5, "2024-01-10", "10:00", "Jo", "555-1111"),
        ("u1", None, "2024-01-10", "10:00", "Jo", "555-1111"),
        ("u1", 5, "", "10:00", "Jo", "555-1111"),
        ("u1", 5, "2024-01-10", None, "Jo", "555-1111"),
        ("u1", 5, "2024-01-10", "10:00", "", "555-1111"),
        ("u1", 5, "2024-01-10", "10:00", "Jo", "   "),
    ],
)
def test_missing_fields(fields):
    with pytest.raises(ValidationError, match="Missing required fields"):
        validate_booking_fields(*fields)


@pytest.mark.parametrize(
    "barber_id, date, time",
    [
        ("five", "2024-01-10", "10:00"),
        (0, "2024-01-10", "10:00"),
        (5, "10/01/2024", "10:00"),
        (5, "2024-02-30", "10:00"),
        (5, "2024-01-10", "ten"),
        (5, "2024-01-10", "25:00"),
    ],
)
def test_malformed_fields(barber_id, date, time):
    with pytest.raises(ValidationError) as info:
        validate_booking_fields("u1", barber_id, date, time, "Jo", "555-1111")
    assert info.value.kind == "validation_error"
