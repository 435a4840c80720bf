import datetime

import pytest

from club_trip_sync.errors import DataIntegrityError, ParseError, ValidationError
from club_trip_sync.statuses import SignupStatus
from club_trip_sync.trips import build_trip_schedule, trip_from_row

UTC = datetime.timezone.utc


def test_all_day_schedule_has_exclusive_end():
    schedule = build_trip_schedule("2026-11-14", end_date="2026-11-15")
    assert schedule.is_all_day
    assert schedule.start == datetime.datetime(2026, 11, 14, 5, 0, tzinfo=UTC)
    assert schedule.end == datetime.datetime(2026, 11, 16, 5, 0, tzinfo=UTC)


def test_single_all_day_lasts_one_day():
    schedule = build_trip_schedule("2026-03-07")
    assert schedule.end - schedule.start == datetime.timedelta(days=1)


def test_all_day_end_before_start_rejected():
    with pytest.raises(ValidationError):
        build_trip_schedule("2026-11-14", end_date="2026-11-12")


def test_timed_schedule_defaults_to_one_hour():
    schedule = build_trip_schedule("2026-07-04", "06:30")
    assert not schedule.is_all_day
    assert schedule.start == datetime.datetime(2026, 7, 4, 10, 30, tzinfo=UTC)
    assert schedule.end == datetime.datetime(2026, 7, 4, 11, 30, tzinfo=UTC)


def test_timed_schedule_with_end():
    schedule = build_trip_schedule("2026-07-04", "06:30", "2026-07-05", "18:00")
    assert schedule.end == datetime.datetime(2026, 7, 5, 22, 0, tzinfo=UTC)


def test_timed_schedule_validation():
    with pytest.raises(ValidationError):
        build_trip_schedule("2026-07-04", "06:30", end_time="05:00")
    with pytest.raises(ValidationError, match="endTime is required"):
        build_trip_schedule("2026-07-04", "06:30", end_date="2026-07-05")
    with pytest.raises(ParseError):
        build_trip_schedule("07/04/2026", "06:30")


def test_trip_from_row():
    trip = trip_from_row({
        "tripId": "backpack",
        "title": "Backpacking",
        "start": "2026-11-14",
        "end": "2026-11-16",
        "isAllDay": "TRUE",
        "gearAvailable": "tent, kayak",
        "signupStatus": "full",
        "eventId": " evt9 ",
    }, 4)
    assert trip.is_all_day
    assert trip.start == datetime.datetime(2026, 11, 14, 5, 0, tzinfo=UTC)
    assert trip.gear_available == ["tent"]
    assert trip.signup_status is SignupStatus.FULL
    assert trip.event_id == "evt9"


def test_open_ended_trips_get_default_end():
    timed = trip_from_row({"tripId": "t", "title": "T", "start": "2026-05-01T12:00:00.000Z"})
    assert timed.effective_end() == datetime.datetime(2026, 5, 1, 13, 0, tzinfo=UTC)
    assert timed.signup_status is SignupStatus.REQUEST_OPEN


@pytest.mark.parametrize("row, message", [
    ({"title": "T", "start": "2026-05-01"}, "missing tripId"),
    ({"tripId": "t", "start": "2026-05-01"}, "missing title"),
    ({"tripId": "t", "title": "T"}, "missing start"),
    ({"tripId": "t", "title": "T", "start": "soon"}, "Invalid instant"),
])
def test_bad_rows(row, message):
    with pytest.raises(DataIntegrityError, match=message):
        trip_from_row(row, 7)
