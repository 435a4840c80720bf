"""
Reconcile the Trips sheet with the club calendar.

The sheet is the source of truth. Each trip owns at most one calendar
event, found by the trip row's ``eventId`` or by the ``tripId`` tag this
package writes into ``extendedProperties.private``. Events without that tag
belong to someone else and are never modified.
"""

import datetime
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .calendar_client import build_trip_event, managed_trip_id
from .errors import ConfigError, DataIntegrityError, IntegrationError, ParseError
from .log import Logger
from .timezones import parse_iso_instant, zoned_time_to_utc
from .trips import TRIPS_SHEET, Trip, trip_from_row

# Events are listed and trips synced for this range around now.
SYNC_PAST_DAYS = 90
SYNC_FUTURE_DAYS = 730

_LOCAL_DATE_TIME = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::\d{2}(?:\.\d+)?)?$"
)


@dataclass
class SyncReport:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def mutations(self) -> int:
        return self.created + self.updated + self.deleted

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"{self.created} created, {self.updated} updated, "
            f"{self.unchanged} unchanged, {self.deleted} deleted, "
            f"{self.skipped} skipped, {len(self.errors)} errors"
        )


def _boundary(value: Optional[Dict[str, Any]], time_zone: str) -> Tuple[str, Any]:
    """Comparable form of an event's start or end."""
    value = value or {}
    if value.get("date"):
        return ("date", value["date"])
    text = str(value.get("dateTime") or "")
    match = _LOCAL_DATE_TIME.match(text)
    try:
        if match:
            year, month, day, hour, minute = (int(g) for g in match.groups())
            instant = zoned_time_to_utc(
                year, month, day, hour, minute, value.get("timeZone") or time_zone
            )
        else:
            instant = parse_iso_instant(text)
    except ParseError:
        return ("raw", text)
    return ("instant", instant)


def event_needs_update(existing: Dict[str, Any], desired: Dict[str, Any], time_zone: str) -> bool:
    """
    True when the calendar copy differs from what the trip should look like.

    Start and end are compared as UTC instants, so the same moment written
    with a different offset or zone does not count as a change.
    """
    for key in ("summary", "description", "location"):
        if (existing.get(key) or "") != (desired.get(key) or ""):
            return True
    for key in ("start", "end"):
        if _boundary(existing.get(key), time_zone) != _boundary(desired.get(key), time_zone):
            return True
    return managed_trip_id(existing) != managed_trip_id(desired)


class _TripSync:
    """State for one reconciliation pass."""

    def __init__(self, ctx, site_base_url: str):
        self.ctx = ctx
        self.site_base_url = site_base_url
        self.time_zone = ctx.config.time_zone
        self.logger: Logger = ctx.logger
        self.report = SyncReport()
        self.claimed: Set[str] = set()
        self.protected_trip_ids: Set[str] = set()
        self.protected_event_ids: Set[str] = set()
        self._event_id_column: Optional[int] = None

    def protect(self, row: Dict[str, str]) -> None:
        """Keep the events of a row we are not syncing this time."""
        trip_id = str(row.get("tripId") or "").strip()
        event_id = str(row.get("eventId") or "").strip()
        if trip_id:
            self.protected_trip_ids.add(trip_id)
        if event_id:
            self.protected_event_ids.add(event_id)

    def load_trips(
        self, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> List[Tuple[Trip, int]]:
        trips: List[Tuple[Trip, int]] = []
        seen: Set[str] = set()
        for index, row in enumerate(self.ctx.store.get_rows(TRIPS_SHEET)):
            row_number = index + 2
            if not any(str(v).strip() for v in row.values()):
                continue
            try:
                trip = trip_from_row(row, row_number, self.time_zone)
            except DataIntegrityError as e:
                self.logger.warn(f"Skipping trip row: {e.message}")
                self.report.skipped += 1
                self.protect(row)
                continue

            if trip.trip_id in seen:
                self.logger.warn(
                    f"Skipping Trips row {row_number}: duplicate tripId {trip.trip_id}"
                )
                self.report.skipped += 1
                self.protect(row)
                continue
            seen.add(trip.trip_id)

            if trip.effective_end() < window_start:
                self.logger.debug(f"Skipping past trip: {trip.title} ({trip.trip_id})")
                self.protect(row)
                continue
            if trip.start >= window_end:
                # its event is not listed, so it cannot be compared
                self.logger.debug(f"Skipping far-future trip: {trip.title} ({trip.trip_id})")
                self.protect(row)
                continue
            trips.append((trip, row_number))
        return trips

    def store_event_id(self, trip: Trip, row_number: int, event_id: str) -> None:
        if self._event_id_column is None:
            self._event_id_column = self.ctx.store.get_column_index(TRIPS_SHEET, "eventId")
        if self._event_id_column < 1:
            self.logger.warn(
                f"Trips sheet has no eventId column; not recording event for {trip.trip_id}"
            )
            return
        self.ctx.store.update_cell(TRIPS_SHEET, row_number, self._event_id_column, event_id)

    def create(self, trip: Trip, row_number: int, desired: Dict[str, Any]) -> None:
        event_id = self.ctx.calendar.create_event(desired)
        self.claimed.add(event_id)
        self.report.created += 1
        self.logger.normal(f"Created event: {trip.title} (ID: {trip.trip_id})")
        self.store_event_id(trip, row_number, event_id)

    def sync_trip(
        self,
        trip: Trip,
        row_number: int,
        events_by_id: Dict[str, Dict[str, Any]],
        tagged: Dict[str, List[Dict[str, Any]]],
    ) -> None:
        calendar = self.ctx.calendar
        desired = build_trip_event(trip, self.site_base_url, self.time_zone)

        existing = events_by_id.get(trip.event_id) if trip.event_id else None
        if existing is None:
            candidates = [e for e in tagged.get(trip.trip_id, []) if e["id"] not in self.claimed]
            existing = candidates[0] if candidates else None

        if existing is None:
            if trip.event_id:
                # stored id outside the listed window, or deleted by hand
                self.claimed.add(trip.event_id)
                if calendar.update_event(trip.event_id, desired):
                    self.report.updated += 1
                    self.logger.normal(f"Updated event: {trip.title} (ID: {trip.trip_id})")
                    return
                self.logger.debug(f"Event {trip.event_id} for {trip.trip_id} is gone; recreating")
            self.create(trip, row_number, desired)
            return

        self.claimed.add(existing["id"])
        if existing["id"] != trip.event_id:
            self.store_event_id(trip, row_number, existing["id"])

        if not event_needs_update(existing, desired, self.time_zone):
            self.report.unchanged += 1
            self.logger.debug(f"Unchanged event: {trip.title} (ID: {trip.trip_id})")
            return

        if calendar.update_event(existing["id"], desired):
            self.report.updated += 1
            self.logger.normal(f"Updated event: {trip.title} (ID: {trip.trip_id})")
        else:
            self.create(trip, row_number, desired)

    def delete_orphans(self, events: List[Dict[str, Any]], live_trip_ids: Set[str]) -> None:
        for event in events:
            trip_id = managed_trip_id(event)
            event_id = event.get("id", "")
            if not trip_id or event_id in self.claimed:
                continue
            if trip_id in self.protected_trip_ids or event_id in self.protected_event_ids:
                continue
            reason = "duplicate" if trip_id in live_trip_ids else "orphaned"
            try:
                self.ctx.calendar.delete_event(event_id)
            except IntegrationError as e:
                self.record_error(f"Error deleting event {event_id}: {e.message}")
                continue
            self.report.deleted += 1
            self.logger.normal(
                f"Deleted {reason} event: {event.get('summary', '')} (ID: {trip_id})"
            )

    def record_error(self, message: str) -> None:
        self.report.errors.append(message)
        self.logger.error(message)


def sync_trips_with_calendar(ctx, site_base_url: Optional[str] = None) -> SyncReport:
    """
    Make the calendar match the Trips sheet.

    1. Creates events for trips that have none, recording the new id in
       the trip row
    2. Updates events whose content differs from their trip
    3. Deletes tagged events whose trip is gone, and duplicate tagged
       events for the same trip

    Rows that fail to parse are skipped and their events left alone. A
    calendar failure for one trip is logged and does not stop the others.

    Args:
        ctx: Application context
        site_base_url: Site root for RSVP links, defaults to the configured one

    Returns:
        Counts of what was done

    Raises:
        ConfigError: If no site base URL is known
        IntegrationError: If the sheet or the event listing cannot be read
    """
    if site_base_url is None:
        site_base_url = ctx.config.site_base_url
    if not site_base_url:
        raise ConfigError("SITE_BASE_URL is not configured")

    now = ctx.now()
    window_start = now - datetime.timedelta(days=SYNC_PAST_DAYS)
    window_end = now + datetime.timedelta(days=SYNC_FUTURE_DAYS)

    run = _TripSync(ctx, site_base_url)
    trips = run.load_trips(window_start, window_end)
    events = ctx.calendar.list_events(window_start, window_end)
    ctx.logger.debug(f"Found {len(trips)} trips and {len(events)} calendar events")

    events_by_id = {e["id"]: e for e in events if e.get("id")}
    tagged: Dict[str, List[Dict[str, Any]]] = {}
    for event in events:
        trip_id = managed_trip_id(event)
        if trip_id:
            tagged.setdefault(trip_id, []).append(event)

    for trip, row_number in trips:
        try:
            run.sync_trip(trip, row_number, events_by_id, tagged)
        except IntegrationError as e:
            run.record_error(f"Error syncing trip {trip.trip_id}: {e.message}")

    run.delete_orphans(events, {trip.trip_id for trip, _ in trips})

    ctx.logger.normal(f"Calendar sync finished: {run.report.summary()}")
    return run.report


class BackgroundSync:
    """
    Runs syncs off the request path on a single worker thread.

    Failures are logged here and never reach whoever scheduled the run.
    """

    def __init__(self, runner: Callable[[Optional[str]], SyncReport], logger: Logger):
        self._runner = runner
        self._logger = logger
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="trip-sync")

    def _run(self, site_base_url: Optional[str]) -> Optional[SyncReport]:
        try:
            return self._runner(site_base_url)
        except Exception as e:
            self._logger.error(f"Background calendar sync failed: {e}", exc_info=True)
            return None

    def schedule(self, site_base_url: Optional[str] = None) -> "Future[Optional[SyncReport]]":
        """Queue a sync and return its future; the result is None on failure."""
        return self._executor.submit(self._run, site_base_url)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
