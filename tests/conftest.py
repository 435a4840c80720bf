import copy
import datetime
import itertools

import pytest

from club_trip_sync.config import Config
from club_trip_sync.context import AppContext
from club_trip_sync.errors import SheetNotFoundError
from club_trip_sync.log import Logger, LogLevel
from club_trip_sync.officer import AttemptStore, OfficerGate
from club_trip_sync.sheets import FoundRow, format_cell

PASSCODE = "trail-mix"
NOW = datetime.datetime(2026, 10, 18, 16, 0, tzinfo=datetime.timezone.utc)


class ManualClock:
    def __init__(self, start=1_800_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTokens:
    def __init__(self, token="test-token"):
        self.token = token
        self.invalidated = 0

    def get_token(self):
        return self.token

    def invalidate(self):
        self.invalidated += 1


class InMemoryRowStore:
    """Same contract as SheetsRowStore, backed by lists."""

    def __init__(self):
        self.sheets = {}
        self.cell_updates = []
        self.appends = []

    def add_sheet(self, name, headers, rows=()):
        self.sheets[name] = {
            "headers": list(headers),
            "rows": [[format_cell(row.get(h)) for h in headers] for row in rows],
        }

    def _sheet(self, name):
        if name not in self.sheets:
            raise SheetNotFoundError(f"Sheet {name} not found", 400, "Unable to parse range: " + name)
        return self.sheets[name]

    def get_rows(self, sheet):
        data = self._sheet(sheet)
        return [
            {h: (raw[i] if i < len(raw) else "") for i, h in enumerate(data["headers"]) if h}
            for raw in data["rows"]
        ]

    def append_row(self, sheet, headers, record):
        data = self.sheets.setdefault(sheet, {"headers": [], "rows": []})
        for h in headers:
            if h not in data["headers"]:
                data["headers"].append(h)
        data["rows"].append([format_cell(record.get(h)) for h in data["headers"]])
        self.appends.append((sheet, dict(record)))

    def find_row_by_column(self, sheet, column, value):
        for index, row in enumerate(self.get_rows(sheet)):
            if row.get(column, "").strip() == str(value).strip():
                return FoundRow(row=row, row_index=index + 2)
        return None

    def get_column_index(self, sheet, column):
        headers = self._sheet(sheet)["headers"]
        return headers.index(column) + 1 if column in headers else 0

    def update_cell(self, sheet, row_index, col_index, value):
        data = self._sheet(sheet)
        raw = data["rows"][row_index - 2]
        while len(raw) < col_index:
            raw.append("")
        raw[col_index - 1] = format_cell(value)
        self.cell_updates.append((sheet, row_index, col_index, format_cell(value)))

    def rows(self, sheet):
        return self.get_rows(sheet)


class FakeCalendar:
    """Same contract as CalendarClient, with call counters."""

    def __init__(self):
        self.events = {}
        self.created = []
        self.updated = []
        self.deleted = []
        self._ids = (f"evt{n}" for n in itertools.count(1))

    def add(self, event_id, event):
        self.events[event_id] = dict(copy.deepcopy(event), id=event_id)

    def create_event(self, event):
        event_id = next(self._ids)
        self.add(event_id, event)
        self.created.append(event_id)
        return event_id

    def update_event(self, event_id, event):
        if event_id not in self.events:
            return False
        self.add(event_id, event)
        self.updated.append(event_id)
        return True

    def delete_event(self, event_id):
        self.events.pop(event_id, None)
        self.deleted.append(event_id)

    def list_events(self, time_min, time_max):
        return [copy.deepcopy(e) for e in self.events.values()]

    @property
    def mutations(self):
        return len(self.created) + len(self.updated) + len(self.deleted)

    def reset_counters(self):
        self.created, self.updated, self.deleted = [], [], []


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryRowStore()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def config():
    return Config(
        service_account_email="sync@club.iam.gserviceaccount.com",
        private_key="unused",
        sheet_id="sheet-1",
        calendar_id="club@group.calendar.google.com",
        officer_passcode=PASSCODE,
        allowed_origin="https://club.example.org",
        site_base_url="https://club.example.org",
    )


@pytest.fixture
def ctx(config, store, calendar, clock):
    logger = Logger(LogLevel.DEBUG)
    context = AppContext(
        config=config,
        tokens=FakeTokens(),
        store=store,
        calendar=calendar,
        officer_gate=OfficerGate(PASSCODE, AttemptStore(clock=clock), logger=logger),
        logger=logger,
        now=lambda: NOW,
    )
    yield context
    context.background_sync.shutdown()
