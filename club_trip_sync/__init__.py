"""
Club Trip Sync Package

This package keeps a club's trip spreadsheet and its public Google Calendar
in step, and serves the member and officer API that writes to the sheet.
"""

from .auth import TokenProvider, get_access_token
from .calendar_client import CalendarClient, build_event_description, build_trip_event
from .config import Config
from .context import AppContext
from .errors import (
    AuthError,
    AuthorizationError,
    ConfigError,
    DataIntegrityError,
    IntegrationError,
    NotFoundError,
    ParseError,
    RateLimitError,
    SheetNotFoundError,
    TripSyncError,
    ValidationError,
)
from .log import LogLevel, Logger
from .officer import AttemptStore, OfficerGate
from .sheets import SheetsRowStore
from .statuses import RequestStatus, SignupStatus
from .sync import BackgroundSync, SyncReport, sync_trips_with_calendar

__version__ = "0.1.0"
