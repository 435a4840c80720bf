"""
Site-wide settings stored in the ``SiteSettings`` sheet.

The sheet holds one row per overridden key (``key``, ``value``,
``updatedAt``). Keys without a row fall back to DEFAULT_SITE_SETTINGS.
"""

import re
from typing import Any, Dict, List
from urllib.parse import urlsplit, urlunsplit

from .errors import DataIntegrityError, SheetNotFoundError, ValidationError
from .timezones import to_iso_instant
from .validation import required_string

SITE_SETTINGS_SHEET = "SiteSettings"
SITE_SETTINGS_HEADERS = ["key", "value", "updatedAt"]

DEFAULT_SITE_SETTINGS = {
    "contactEmail": "utch1968@gmail.com",
    "volLinkUrl": "https://utk.campuslabs.com/engage/organization/canoeandhiking",
    "groupMeUrl": "https://groupme.com/join_group/107532542/IWSaGazV",
    "meetingSchedule": "Every Week - 7:00 PM",
    "meetingLocation": "AMB 27",
    "meetingNote": (
        "We meet every week at 7pm in AMB27. This is where trips are discussed, "
        "gear is handed out and returned, and members connect before adventures. "
        "Meeting attendance is considered for limited-capacity trips."
    ),
    "requestIntroMessage": (
        "Submit your request below. Officers review requests before confirming rosters."
    ),
    "meetingOnlyMessage": (
        "This trip is meeting sign-up only. Please attend a weekly meeting to request a spot."
    ),
    "fullTripMessage": (
        "This trip is currently full. We appreciate your interest and hope you can "
        "join a future trip."
    ),
    "requestReceivedMessage": (
        "Request received. Officers will review it; this is not a confirmed spot."
    ),
}

SITE_SETTING_KEYS = tuple(DEFAULT_SITE_SETTINGS)

EMAIL_KEYS = ("contactEmail",)
URL_KEYS = ("volLinkUrl", "groupMeUrl")
MAX_MESSAGE_LENGTH = 800

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_https_url(raw: Any, key: str) -> str:
    """
    Validate an https URL and return it in canonical form (lower-case
    scheme and host, ``/`` for an empty path).
    """
    value = required_string(raw, key)
    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError as e:
        raise ValidationError(f"{key} must be a valid URL") from e
    if not parts.scheme or not parts.hostname:
        raise ValidationError(f"{key} must be a valid URL")
    if parts.scheme.lower() != "https":
        raise ValidationError(f"{key} must use https://")

    netloc = parts.hostname.lower()
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if parts.username:
        userinfo = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{userinfo}@{netloc}"
    if port is not None and port != 443:
        netloc = f"{netloc}:{port}"
    return urlunsplit(("https", netloc, parts.path or "/", parts.query, parts.fragment))


def normalize_email(raw: Any, key: str) -> str:
    value = required_string(raw, key)
    if not _EMAIL_PATTERN.match(value):
        raise ValidationError(f"{key} must be a valid email address")
    return value


def normalize_message(raw: Any, key: str) -> str:
    value = required_string(raw, key)
    if len(value) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"{key} is too long (max {MAX_MESSAGE_LENGTH} characters)")
    return value


def normalize_setting_value(key: str, raw: Any) -> str:
    """
    Validate and normalize one setting.

    Raises:
        ValidationError: If the key is unknown or the value invalid
    """
    if key not in DEFAULT_SITE_SETTINGS:
        raise ValidationError(f"Unsupported setting key: {key}")
    if key in EMAIL_KEYS:
        return normalize_email(raw, key)
    if key in URL_KEYS:
        return normalize_https_url(raw, key)
    return normalize_message(raw, key)


def parse_site_settings_rows(rows: List[Dict[str, str]]) -> Dict[str, str]:
    """
    Overlay stored rows on the defaults.

    Rows with an empty key are ignored.

    Raises:
        DataIntegrityError: On an unknown key, a repeated key or an
            invalid stored value
    """
    settings = dict(DEFAULT_SITE_SETTINGS)
    seen = set()
    for index, row in enumerate(rows):
        row_number = index + 2
        key = str(row.get("key") or "").strip()
        if not key:
            continue
        if key not in DEFAULT_SITE_SETTINGS:
            raise DataIntegrityError(f'SiteSettings has unsupported key "{key}" at row {row_number}')
        if key in seen:
            raise DataIntegrityError(f'SiteSettings has duplicate key "{key}" at row {row_number}')
        try:
            settings[key] = normalize_setting_value(key, row.get("value"))
        except ValidationError as e:
            raise DataIntegrityError(f"SiteSettings row {row_number}: {e.message}") from e
        seen.add(key)
    return settings


def _read_rows(store) -> List[Dict[str, str]]:
    try:
        return store.get_rows(SITE_SETTINGS_SHEET)
    except SheetNotFoundError:
        return []


def get_site_settings(ctx) -> dict:
    """Effective settings; a missing sheet means nothing is overridden."""
    return {"settings": parse_site_settings_rows(_read_rows(ctx.store))}


def update_site_settings(ctx, body: dict, client_address: str) -> dict:
    """
    Store new values for one or more settings.

    Every incoming key is validated before anything is written. Existing
    rows are updated in place; keys without a row get one appended.

    Args:
        ctx: Application context
        body: ``{"officerSecret": ..., "settings": {key: value}}``
        client_address: Caller's address for the officer lockout

    Returns:
        ``{"settings": ...}`` with the full effective settings, re-read
        from the sheet after the write

    Raises:
        RateLimitError, AuthorizationError: From the officer gate
        ValidationError: On an unknown key or invalid value
        DataIntegrityError: If the sheet lacks the value/updatedAt columns
    """
    ctx.officer_gate.authorize(body.get("officerSecret"), client_address)

    incoming = body.get("settings")
    if not isinstance(incoming, dict):
        raise ValidationError("settings object is required")
    if not incoming:
        raise ValidationError("settings must include at least one key")

    normalized = {key: normalize_setting_value(key, value) for key, value in incoming.items()}

    store = ctx.store
    row_index_by_key = {}
    for index, row in enumerate(_read_rows(store)):
        key = str(row.get("key") or "").strip()
        if key:
            row_index_by_key[key] = index + 2

    value_col = 0
    updated_at_col = 0
    if any(key in row_index_by_key for key in normalized):
        value_col = store.get_column_index(SITE_SETTINGS_SHEET, "value")
        updated_at_col = store.get_column_index(SITE_SETTINGS_SHEET, "updatedAt")
        if value_col < 1 or updated_at_col < 1:
            raise DataIntegrityError(
                "SiteSettings sheet is missing required columns: value and updatedAt"
            )

    for key, value in normalized.items():
        now = to_iso_instant(ctx.now())
        row_index = row_index_by_key.get(key)
        if row_index is None:
            store.append_row(
                SITE_SETTINGS_SHEET,
                SITE_SETTINGS_HEADERS,
                {"key": key, "value": value, "updatedAt": now},
            )
            continue
        store.update_cell(SITE_SETTINGS_SHEET, row_index, value_col, value)
        store.update_cell(SITE_SETTINGS_SHEET, row_index, updated_at_col, now)

    ctx.logger.normal(f"Updated site settings: {', '.join(normalized)}")
    return {"settings": parse_site_settings_rows(store.get_rows(SITE_SETTINGS_SHEET))}
