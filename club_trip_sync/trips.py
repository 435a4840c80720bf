"""
Trip records as stored in the ``Trips`` sheet.

Only the read side lives here: turning rows into ``Trip`` objects for the
request gate and the calendar sync, and computing a trip's start/end from
officer form input. Creating and editing trip rows is the job of the trip
repository, which calls ``BackgroundSync.schedule`` after each change.
"""

import datetime
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import DataIntegrityError, ParseError, ValidationError
from .statuses import SignupStatus, read_signup_status_from_row
from .timezones import (
    DEFAULT_TIMEZONE,
    add_days_to_date_string,
    parse_date_and_time,
    parse_date_only,
    parse_iso_instant,
)
from .validation import normalize_gear_list

TRIPS_SHEET = "Trips"

TRIP_HEADERS = [
    "tripId",
    "eventId",
    "title",
    "activity",
    "start",
    "end",
    "isAllDay",
    "location",
    "leaderName",
    "leaderContact",
    "difficulty",
    "meetTime",
    "meetPlace",
    "notes",
    "gearAvailable",
    "signupStatus",
]

# Timed trips entered without an end time get this length on the calendar.
DEFAULT_TRIP_DURATION = datetime.timedelta(hours=1)

_TRUE_VALUES = {"true", "yes", "1"}


@dataclass
class Trip:
    trip_id: str
    title: str
    start: datetime.datetime
    end: Optional[datetime.datetime] = None
    is_all_day: bool = False
    event_id: str = ""
    activity: str = ""
    location: str = ""
    leader_name: str = ""
    leader_contact: str = ""
    difficulty: str = ""
    meet_time: str = ""
    meet_place: str = ""
    notes: str = ""
    gear_available: List[str] = field(default_factory=list)
    signup_status: SignupStatus = SignupStatus.REQUEST_OPEN

    def effective_end(self) -> datetime.datetime:
        """End instant, filling in the defaults for open-ended trips."""
        if self.end is not None:
            return self.end
        if self.is_all_day:
            return self.start + datetime.timedelta(days=1)
        return self.start + DEFAULT_TRIP_DURATION


@dataclass
class TripSchedule:
    start: datetime.datetime
    end: datetime.datetime
    is_all_day: bool


def _read_instant(value: str, time_zone: str) -> datetime.datetime:
    text = value.strip()
    if len(text) == 10:
        # bare YYYY-MM-DD, only written for all-day trips
        return parse_date_only(text, time_zone)
    return parse_iso_instant(text)


def trip_from_row(row: dict, row_number: int = 0, time_zone: str = DEFAULT_TIMEZONE) -> Trip:
    """
    Build a Trip from a sheet row.

    Args:
        row: Record keyed by TRIP_HEADERS
        row_number: Sheet row, used in error messages
        time_zone: Zone for rows that store bare dates

    Returns:
        Parsed trip

    Raises:
        DataIntegrityError: If a required field is missing or malformed
    """
    where = f"Trips row {row_number}" if row_number else "Trips row"

    def text(key: str) -> str:
        return str(row.get(key) or "").strip()

    trip_id = text("tripId")
    title = text("title")
    if not trip_id:
        raise DataIntegrityError(f"{where} is missing tripId")
    if not title:
        raise DataIntegrityError(f"{where} ({trip_id}) is missing title")
    if not text("start"):
        raise DataIntegrityError(f"{where} ({trip_id}) is missing start")

    try:
        start = _read_instant(text("start"), time_zone)
        end = _read_instant(text("end"), time_zone) if text("end") else None
    except ParseError as e:
        raise DataIntegrityError(f"{where} ({trip_id}): {e.message}") from e

    return Trip(
        trip_id=trip_id,
        title=title,
        start=start,
        end=end,
        is_all_day=text("isAllDay").lower() in _TRUE_VALUES,
        event_id=text("eventId"),
        activity=text("activity"),
        location=text("location"),
        leader_name=text("leaderName"),
        leader_contact=text("leaderContact"),
        difficulty=text("difficulty"),
        meet_time=text("meetTime"),
        meet_place=text("meetPlace"),
        notes=text("notes"),
        gear_available=normalize_gear_list(row.get("gearAvailable")),
        signup_status=read_signup_status_from_row(
            row.get("signupStatus"), f"signupStatus for trip {trip_id}"
        ),
    )


def find_trip(store, trip_id: str):
    """Row of the trip with ``trip_id``, or None."""
    return store.find_row_by_column(TRIPS_SHEET, "tripId", trip_id)


def build_trip_schedule(
    start_date: str,
    start_time: str = "",
    end_date: str = "",
    end_time: str = "",
    time_zone: str = DEFAULT_TIMEZONE,
) -> TripSchedule:
    """
    Work out a trip's instants from officer form fields.

    No start time means an all-day trip: the end becomes local midnight of
    the day after the last day, matching the calendar's exclusive end date.
    A timed trip without an end time lasts DEFAULT_TRIP_DURATION.

    Raises:
        ParseError: If a date or time is malformed
        ValidationError: If the end is not after the start
    """
    start_date = (start_date or "").strip()
    start_time = (start_time or "").strip()
    end_date = (end_date or "").strip()
    end_time = (end_time or "").strip()

    if not start_time:
        last_day = end_date or start_date
        start = parse_date_only(start_date, time_zone)
        end = parse_date_only(add_days_to_date_string(last_day, 1), time_zone)
        if end <= start:
            raise ValidationError("endDate must not be before startDate")
        return TripSchedule(start=start, end=end, is_all_day=True)

    start = parse_date_and_time(start_date, start_time, time_zone)
    if end_time:
        end = parse_date_and_time(end_date or start_date, end_time, time_zone)
    elif end_date:
        raise ValidationError("endTime is required when endDate is set for a timed trip")
    else:
        end = start + DEFAULT_TRIP_DURATION
    if end <= start:
        raise ValidationError("Trip must end after it starts")
    return TripSchedule(start=start, end=end, is_all_day=False)
