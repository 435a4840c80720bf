"""
Trip ideas submitted by members.
"""

from .timezones import to_iso_instant
from .validation import optional_string, required_string

SUGGESTIONS_SHEET = "Suggestions"

SUGGESTION_HEADERS = [
    "submittedAt",
    "name",
    "email",
    "willingToLead",
    "idea",
    "location",
    "timing",
    "notes",
]


def submit_suggestion(ctx, body: dict) -> dict:
    """
    Append a suggestion row.

    Raises:
        ValidationError: If name or idea is missing
    """
    record = {
        "submittedAt": to_iso_instant(ctx.now()),
        "name": required_string(body.get("name"), "name"),
        "idea": required_string(body.get("idea"), "idea"),
    }
    for key in ("email", "willingToLead", "location", "timing", "notes"):
        record[key] = optional_string(body.get(key))

    ctx.store.append_row(SUGGESTIONS_SHEET, SUGGESTION_HEADERS, record)
    ctx.logger.debug(f"Suggestion from {record['name']} recorded")
    return {}
