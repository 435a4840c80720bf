"""
Member sign-up requests for trips.

Members submit requests against trips that are open for them; officers
list them per trip and move them between PENDING, APPROVED and DECLINED.
"""

import secrets
import time
import uuid
from typing import Any, Dict, List

from .errors import DataIntegrityError, NotFoundError, ValidationError
from .statuses import (
    RequestStatus,
    SignupStatus,
    parse_request_status_input,
    read_request_status_from_row,
    read_signup_status_from_row,
)
from .timezones import parse_iso_instant, to_iso_instant
from .trips import find_trip
from .validation import normalize_gear_list, optional_string, required_string

REQUESTS_SHEET = "Requests"

REQUEST_HEADERS = [
    "requestId",
    "submittedAt",
    "tripId",
    "name",
    "contact",
    "carpool",
    "gearNeeded",
    "notes",
    "status",
    "updatedAt",
]

# Shown to members when a trip is not taking requests.
CLOSED_MESSAGES = {
    SignupStatus.MEETING_ONLY: "This trip is meeting sign-up only",
    SignupStatus.FULL: "This trip is full",
}


def generate_request_id() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        # no OS randomness source
        return f"{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


def create_request(ctx, body: dict) -> dict:
    """
    Record a member's request to join a trip.

    Args:
        ctx: Application context
        body: Submitted form fields

    Returns:
        ``{"tripId": ..., "requestId": ...}``

    Raises:
        ValidationError: On missing fields, or if the trip is not open
            for requests
        NotFoundError: If the trip does not exist
    """
    trip_id = required_string(body.get("tripId"), "tripId")
    name = required_string(body.get("name"), "name")
    contact = required_string(body.get("contact"), "contact")
    carpool = optional_string(body.get("carpool"))
    gear_needed = normalize_gear_list(body.get("gearNeeded"))
    notes = optional_string(body.get("notes"))

    found = find_trip(ctx.store, trip_id)
    if found is None:
        raise NotFoundError("Trip not found")

    signup_status = read_signup_status_from_row(
        found.row.get("signupStatus"), f"signupStatus for trip {trip_id}"
    )
    if not signup_status.accepts_requests:
        raise ValidationError(CLOSED_MESSAGES[signup_status])

    request_id = generate_request_id()
    now = to_iso_instant(ctx.now())
    ctx.store.append_row(
        REQUESTS_SHEET,
        REQUEST_HEADERS,
        {
            "requestId": request_id,
            "submittedAt": now,
            "tripId": trip_id,
            "name": name,
            "contact": contact,
            "carpool": carpool,
            "gearNeeded": ",".join(gear_needed),
            "notes": notes,
            "status": RequestStatus.PENDING.value,
            "updatedAt": now,
        },
    )
    ctx.logger.normal(f"Request {request_id} submitted for trip {trip_id}")
    return {"tripId": trip_id, "requestId": request_id}


def request_from_row(row: Dict[str, str], row_number: int) -> Dict[str, Any]:
    """
    Validate a stored request row.

    Raises:
        DataIntegrityError: If any required field is empty or malformed
    """
    def required(key: str) -> str:
        value = str(row.get(key) or "").strip()
        if not value:
            raise DataIntegrityError(f"Requests row {row_number} is missing {key}")
        return value

    submitted_at = required("submittedAt")
    try:
        parse_iso_instant(submitted_at)
    except ValidationError as e:
        raise DataIntegrityError(f"Requests row {row_number}: {e.message}") from e

    return {
        "requestId": required("requestId"),
        "submittedAt": submitted_at,
        "tripId": required("tripId"),
        "name": required("name"),
        "contact": required("contact"),
        "carpool": optional_string(row.get("carpool")),
        "gearNeeded": normalize_gear_list(row.get("gearNeeded")),
        "notes": optional_string(row.get("notes")),
        "status": read_request_status_from_row(
            row.get("status"), f"status in Requests row {row_number}"
        ).value,
        "updatedAt": optional_string(row.get("updatedAt")),
    }


def list_requests_by_trip(ctx, body: dict, client_address: str) -> dict:
    """
    Officer view of every request for one trip, oldest first.

    Raises:
        RateLimitError, AuthorizationError: From the officer gate
        ValidationError: If tripId is missing
        DataIntegrityError: If a matching row is malformed
    """
    ctx.officer_gate.authorize(body.get("officerSecret"), client_address)
    trip_id = required_string(body.get("tripId"), "tripId")

    requests: List[Dict[str, Any]] = []
    for index, row in enumerate(ctx.store.get_rows(REQUESTS_SHEET)):
        if str(row.get("tripId") or "").strip() != trip_id:
            continue
        requests.append(request_from_row(row, index + 2))

    # ISO-8601 UTC strings sort chronologically
    requests.sort(key=lambda r: r["submittedAt"])
    return {"requests": requests}


def update_request_status(ctx, request_id: str, body: dict, client_address: str) -> dict:
    """
    Set a request's status and stamp updatedAt.

    Returns:
        ``{"requestId": ..., "status": ...}``

    Raises:
        RateLimitError, AuthorizationError: From the officer gate
        ValidationError: If the status is not a known value
        NotFoundError: If no request has this id
        DataIntegrityError: If the sheet lacks a status or updatedAt column
    """
    ctx.officer_gate.authorize(body.get("officerSecret"), client_address)
    status = parse_request_status_input(body.get("status"))
    request_id = required_string(request_id, "requestId")

    store = ctx.store
    found = store.find_row_by_column(REQUESTS_SHEET, "requestId", request_id)
    if found is None:
        raise NotFoundError("Request not found")

    status_col = store.get_column_index(REQUESTS_SHEET, "status")
    updated_at_col = store.get_column_index(REQUESTS_SHEET, "updatedAt")
    if status_col < 1:
        raise DataIntegrityError("Requests sheet is missing status column")
    if updated_at_col < 1:
        raise DataIntegrityError("Requests sheet is missing updatedAt column")

    store.update_cell(REQUESTS_SHEET, found.row_index, status_col, status.value)
    store.update_cell(REQUESTS_SHEET, found.row_index, updated_at_col, to_iso_instant(ctx.now()))

    ctx.logger.normal(f"Request {request_id} marked {status.value}")
    return {"requestId": request_id, "status": status.value}
