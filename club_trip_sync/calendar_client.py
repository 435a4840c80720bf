"""
Google Calendar access for trip events.

Wraps the Calendar v3 ``events`` resource with the error semantics the sync
relies on: updating a missing event reports ``False`` so the caller can
create it instead, and deleting an event that is already gone is not an
error.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from googleapiclient.errors import HttpError

from .errors import IntegrationError
from .google_api import ServiceFactory, http_error_details, service_factory_for
from .timezones import (
    DEFAULT_TIMEZONE,
    add_days_to_date_string,
    get_date_time_parts_in_zone,
    to_iso_instant,
)

# Marks events this package owns, in extendedProperties.private.
MANAGED_BY = "club-trip-sync"

DESCRIPTION_HEADER = "UTCH Trip"

LIST_PAGE_SIZE = 2500


def format_date_time(date_value: str, time_value: str) -> str:
    """Local wall-clock dateTime for the API (no offset, zone sent separately)."""
    return f"{date_value}T{time_value}:00"


def build_rsvp_url(site_base_url: str, trip_id: str) -> str:
    return f"{site_base_url.rstrip('/')}/rsvp.html?tripId={quote(trip_id, safe='')}"


def build_event_description(
    trip_id: str,
    rsvp_url: str,
    activity: str = "",
    difficulty: str = "",
    gear_available: Optional[List[str]] = None,
    meet_time: str = "",
    meet_place: str = "",
    leader_name: str = "",
    leader_contact: str = "",
    notes: str = "",
) -> str:
    """
    Render the human-readable event description for a trip.

    Lines for absent fields are left out entirely rather than emitted
    empty. The output only depends on the arguments, so an unchanged trip
    always renders the same text.

    Args:
        trip_id: Trip identifier
        rsvp_url: Link to the request form for this trip
        activity: Optional activity type
        difficulty: Optional difficulty
        gear_available: Optional club gear offered on the trip
        meet_time: Optional meeting time
        meet_place: Optional meeting place
        leader_name: Optional leader name
        leader_contact: Optional leader contact
        notes: Optional free-form notes

    Returns:
        Description text
    """
    lines = [DESCRIPTION_HEADER, "", f"Trip ID: {trip_id}"]

    if activity:
        lines.append(f"Activity: {activity}")
    if difficulty:
        lines.append(f"Difficulty: {difficulty}")
    if gear_available:
        lines.append(f"Club gear available: {', '.join(gear_available)}")

    lines.append("")
    if meet_time:
        lines.append(f"Meet time: {meet_time}")
    if meet_place:
        lines.append(f"Meet place: {meet_place}")
    if leader_name:
        lines.append(f"Leader: {leader_name}")
    if leader_contact:
        lines.append(f"Leader contact: {leader_contact}")

    lines.extend(["", f"RSVP: {rsvp_url}"])

    if notes:
        lines.extend(["", "Notes:", notes])

    return "\n".join(lines)


def build_trip_event(trip, site_base_url: str, time_zone: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    """
    Full Calendar event body for a trip.

    All-day trips use ``date`` fields with an exclusive end date; timed
    trips use local ``dateTime`` plus ``timeZone``.
    """
    start_parts = get_date_time_parts_in_zone(trip.start, time_zone)
    end_parts = get_date_time_parts_in_zone(trip.effective_end(), time_zone)

    if trip.is_all_day:
        end_date = end_parts["date"]
        if end_date <= start_parts["date"]:
            end_date = add_days_to_date_string(start_parts["date"], 1)
        start = {"date": start_parts["date"]}
        end = {"date": end_date}
    else:
        start = {
            "dateTime": format_date_time(start_parts["date"], start_parts["time"]),
            "timeZone": time_zone,
        }
        end = {
            "dateTime": format_date_time(end_parts["date"], end_parts["time"]),
            "timeZone": time_zone,
        }

    event: Dict[str, Any] = {
        "summary": trip.title,
        "description": build_event_description(
            trip.trip_id,
            build_rsvp_url(site_base_url, trip.trip_id),
            activity=trip.activity,
            difficulty=trip.difficulty,
            gear_available=trip.gear_available,
            meet_time=trip.meet_time,
            meet_place=trip.meet_place,
            leader_name=trip.leader_name,
            leader_contact=trip.leader_contact,
            notes=trip.notes,
        ),
        "start": start,
        "end": end,
        "extendedProperties": {
            "private": {"tripId": trip.trip_id, "managedBy": MANAGED_BY},
        },
    }
    if trip.location:
        event["location"] = trip.location
    return event


def managed_trip_id(event: Dict[str, Any]) -> str:
    """Trip id tagged on an event we created, or "" for foreign events."""
    private = (event.get("extendedProperties") or {}).get("private") or {}
    if private.get("managedBy") != MANAGED_BY:
        return ""
    return str(private.get("tripId") or "")


class CalendarClient:
    """
    CRUD over one calendar's events.
    https://developers.google.com/calendar/api/v3/reference/events

    Attributes:
        calendar_id: ID of the calendar trips are mirrored into
    """

    def __init__(
        self,
        token_provider,
        calendar_id: str,
        service_factory: Optional[ServiceFactory] = None,
    ):
        self._tokens = token_provider
        self.calendar_id = calendar_id
        self._service_factory = service_factory or service_factory_for("calendar", "v3")

    def _events(self):
        return self._service_factory(self._tokens.get_token()).events()

    def _failure(self, action: str, error: HttpError) -> IntegrationError:
        status, body = http_error_details(error)
        if status == 401:
            self._tokens.invalidate()
        return IntegrationError(
            f"Failed to {action} calendar event", upstream_status=status, upstream_body=body
        )

    def create_event(self, event: Dict[str, Any]) -> str:
        """
        Insert a new event.

        Returns:
            The calendar's id for the new event

        Raises:
            IntegrationError: If the API rejects the request
        """
        try:
            created = self._events().insert(
                calendarId=self.calendar_id,
                body=event,
            ).execute()
        except HttpError as error:
            raise self._failure("create", error) from error
        return created["id"]

    def update_event(self, event_id: str, event: Dict[str, Any]) -> bool:
        """
        Replace an existing event.

        Returns:
            True if updated, False if the event does not exist

        Raises:
            IntegrationError: On any failure other than 404
        """
        try:
            self._events().update(
                calendarId=self.calendar_id,
                eventId=event_id,
                body=event,
            ).execute()
        except HttpError as error:
            status, _ = http_error_details(error)
            if status == 404:
                return False
            raise self._failure("update", error) from error
        return True

    def delete_event(self, event_id: str) -> None:
        """Delete an event; one that is already gone (404/410) is fine."""
        try:
            self._events().delete(
                calendarId=self.calendar_id,
                eventId=event_id,
            ).execute()
        except HttpError as error:
            status, _ = http_error_details(error)
            if status in (404, 410):
                return
            raise self._failure("delete", error) from error

    def list_events(self, time_min, time_max) -> List[Dict[str, Any]]:
        """
        All events overlapping [time_min, time_max), recurring events
        expanded into single instances, ordered by start time.

        Args:
            time_min: Lower bound (datetime or RFC 3339 string)
            time_max: Upper bound (datetime or RFC 3339 string)

        Returns:
            Raw event resources from every page
        """
        params = {
            "calendarId": self.calendar_id,
            "timeMin": time_min if isinstance(time_min, str) else to_iso_instant(time_min),
            "timeMax": time_max if isinstance(time_max, str) else to_iso_instant(time_max),
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": LIST_PAGE_SIZE,
        }
        events: List[Dict[str, Any]] = []
        page_token = None
        while True:
            if page_token:
                params["pageToken"] = page_token
            try:
                response = self._events().list(**params).execute()
            except HttpError as error:
                raise self._failure("list", error) from error
            events.extend(response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        return events
