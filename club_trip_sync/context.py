"""
Wiring of the collaborators every handler needs.
"""

import datetime
from dataclasses import dataclass, field
from typing import Callable, Optional

from .auth import TokenProvider
from .calendar_client import CalendarClient
from .config import Config
from .log import Logger
from .officer import OfficerGate
from .sheets import SheetsRowStore
from .sync import BackgroundSync, sync_trips_with_calendar
from .timezones import utc_now


@dataclass
class AppContext:
    """
    Attributes:
        config: Process configuration
        tokens: Shared bearer-token cache
        store: Spreadsheet row store
        calendar: Calendar event client
        officer_gate: Officer passcode check with lockout
        logger: Package logger
        now: Clock returning an aware UTC datetime
        background_sync: Executor for syncs off the request path
    """
    config: Config
    tokens: TokenProvider
    store: SheetsRowStore
    calendar: CalendarClient
    officer_gate: OfficerGate
    logger: Logger
    now: Callable[[], datetime.datetime] = utc_now
    background_sync: Optional[BackgroundSync] = field(default=None)

    def __post_init__(self):
        if self.background_sync is None:
            self.background_sync = BackgroundSync(
                lambda site_base_url: sync_trips_with_calendar(self, site_base_url),
                self.logger,
            )

    @classmethod
    def from_config(cls, config: Config, logger: Optional[Logger] = None) -> "AppContext":
        logger = logger or Logger(config.log_level)
        tokens = TokenProvider(config.service_account_email, config.private_key)
        return cls(
            config=config,
            tokens=tokens,
            store=SheetsRowStore(tokens, config.sheet_id),
            calendar=CalendarClient(tokens, config.calendar_id),
            officer_gate=OfficerGate(config.officer_passcode, logger=logger),
            logger=logger,
        )
