"""
Conversion between wall-clock times in a named zone and absolute instants.

Local to UTC works by guessing: treat the civil fields as if they were UTC,
ask what that instant looks like in the target zone, and use the difference
as the zone offset. The guess is corrected once more when the second offset
disagrees with the first (the guess landed on the other side of a DST
transition). Offsets only take one of two values near a transition, so two
rounds are enough.
"""

import datetime
import re
from typing import Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ParseError

DEFAULT_TIMEZONE = "America/New_York"

_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

UTC = datetime.timezone.utc


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ParseError(f"Invalid time zone: {name}") from e


def _match_date(value: str):
    match = _DATE_PATTERN.match(str(value or ""))
    if not match:
        raise ParseError(f"Invalid date: {value}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def _match_time(value: str):
    match = _TIME_PATTERN.match(str(value or ""))
    if not match:
        raise ParseError(f"Invalid time: {value}")
    return int(match.group(1)), int(match.group(2))


def _zone_offset(instant: datetime.datetime, zone: ZoneInfo) -> datetime.timedelta:
    """Displayed civil time in ``zone`` minus the civil time in UTC."""
    displayed = instant.astimezone(zone).replace(tzinfo=None)
    return displayed - instant.astimezone(UTC).replace(tzinfo=None)


def zoned_time_to_utc(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    time_zone: str = DEFAULT_TIMEZONE,
) -> datetime.datetime:
    """
    Convert civil fields in ``time_zone`` to an aware UTC datetime.

    Times that fall in a spring-forward gap keep the offset in force
    before the jump, so 02:30 on a New York spring-forward day lands on
    06:30Z (01:30 standard time). Ambiguous fall-back times resolve to the
    first (daylight) occurrence.

    Raises:
        ParseError: If the fields do not form a real date/time
    """
    zone = _zone(time_zone)
    try:
        guess = datetime.datetime(year, month, day, hour, minute, tzinfo=UTC)
    except ValueError as e:
        raise ParseError(
            f"Invalid date/time: {year:04d}-{month:02d}-{day:02d} "
            f"{hour:02d}:{minute:02d}"
        ) from e

    offset = _zone_offset(guess, zone)
    adjusted = guess - offset
    second_offset = _zone_offset(adjusted, zone)
    if second_offset != offset:
        adjusted = guess - second_offset
    return adjusted


def parse_date_only(value: str, time_zone: str = DEFAULT_TIMEZONE) -> datetime.datetime:
    """Instant of local midnight at the start of ``YYYY-MM-DD``."""
    year, month, day = _match_date(value)
    return zoned_time_to_utc(year, month, day, 0, 0, time_zone)


def parse_date_and_time(
    date_value: str,
    time_value: str,
    time_zone: str = DEFAULT_TIMEZONE,
) -> datetime.datetime:
    """
    Instant for a local ``YYYY-MM-DD`` date and ``HH:MM`` time.

    Args:
        date_value: Local date
        time_value: Local 24-hour time
        time_zone: IANA zone name

    Returns:
        Aware datetime in UTC

    Raises:
        ParseError: If either value does not match its pattern
    """
    year, month, day = _match_date(date_value)
    hour, minute = _match_time(time_value)
    return zoned_time_to_utc(year, month, day, hour, minute, time_zone)


def add_days_to_date_string(date_value: str, days: int) -> str:
    """
    Shift a ``YYYY-MM-DD`` string by whole days.

    Pure calendar arithmetic; no zone is involved since the value is an
    all-day date rather than an instant.
    """
    year, month, day = _match_date(date_value)
    try:
        base = datetime.date(year, month, day)
    except ValueError as e:
        raise ParseError(f"Invalid date: {date_value}") from e
    return (base + datetime.timedelta(days=days)).isoformat()


def get_date_time_parts_in_zone(
    instant: datetime.datetime,
    time_zone: str = DEFAULT_TIMEZONE,
) -> Dict[str, str]:
    """
    Civil date and time of ``instant`` in ``time_zone``.

    Naive datetimes are taken to be UTC.

    Returns:
        ``{"date": "YYYY-MM-DD", "time": "HH:MM"}``
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    local = instant.astimezone(_zone(time_zone))
    return {
        "date": local.strftime("%Y-%m-%d"),
        "time": local.strftime("%H:%M"),
    }


def to_iso_instant(instant: datetime.datetime) -> str:
    """
    Format as ``YYYY-MM-DDTHH:MM:SS.sssZ``.

    Fixed width in UTC, so string comparison orders chronologically.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    utc = instant.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_iso_instant(value: str) -> datetime.datetime:
    """
    Parse an ISO-8601 instant such as ``2026-10-18T13:00:00.000Z``.

    Values without an offset are read as UTC.

    Raises:
        ParseError: If the value is not ISO-8601
    """
    text = str(value or "").strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid instant: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(UTC)
