"""
Error types for Club Trip Sync.

Every error carries the HTTP-style status it maps to so the response
layer can turn it into an ``{"ok": false, "error": ...}`` envelope without
a lookup table.
"""

from typing import Optional


class TripSyncError(Exception):
    """Base class for all errors raised by this package."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TripSyncError):
    """Missing or malformed input."""

    status = 400


class ParseError(ValidationError):
    """A date, time or zone string did not match the expected pattern."""


class AuthorizationError(TripSyncError):
    """Wrong or missing officer passcode."""

    status = 403


class NotFoundError(TripSyncError):
    """Unknown trip or request id."""

    status = 404


class RateLimitError(TripSyncError):
    """Too many failed officer attempts from one client address."""

    status = 429


class IntegrationError(TripSyncError):
    """
    A call to the token endpoint, the calendar or the spreadsheet failed.

    Attributes:
        upstream_status: HTTP status returned by the upstream service, if any
        upstream_body: Raw response body, kept for operator diagnosis
    """

    status = 500

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
    ):
        if upstream_status is not None:
            message = f"{message} (HTTP {upstream_status})"
        if upstream_body:
            message = f"{message}: {upstream_body}"
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class AuthError(IntegrationError):
    """The service-account token exchange was rejected."""


class SheetNotFoundError(IntegrationError):
    """The requested sheet (tab) does not exist in the spreadsheet."""


class DataIntegrityError(TripSyncError):
    """A stored row violates an invariant the reader relies on."""

    status = 500


class ConfigError(TripSyncError):
    """Required configuration is missing or invalid."""

    status = 500
