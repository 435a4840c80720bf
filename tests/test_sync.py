import pytest

from club_trip_sync.calendar_client import MANAGED_BY
from club_trip_sync.errors import ConfigError, IntegrationError
from club_trip_sync.log import Logger
from club_trip_sync.sync import BackgroundSync, SyncReport, event_needs_update, sync_trips_with_calendar
from club_trip_sync.trips import TRIP_HEADERS, TRIPS_SHEET


def trip_row(trip_id, start, end="", **extra):
    row = {"tripId": trip_id, "title": trip_id.title(), "start": start, "end": end}
    row.update(extra)
    return row


def tag(trip_id):
    return {"private": {"tripId": trip_id, "managedBy": MANAGED_BY}}


@pytest.fixture
def seeded(store):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("hike", "2026-11-07T13:00:00.000Z", "2026-11-07T20:00:00.000Z", location="Smokies"),
        trip_row("backpack", "2026-11-14", "2026-11-16", isAllDay="TRUE", gearAvailable="tent,stove"),
    ])
    return store


def test_first_run_creates_and_records_event_ids(ctx, seeded, calendar):
    report = sync_trips_with_calendar(ctx)

    assert report.created == 2
    assert report.errors == []
    rows = seeded.rows(TRIPS_SHEET)
    assert {r["eventId"] for r in rows} == set(calendar.events)
    backpack = calendar.events[rows[1]["eventId"]]
    assert backpack["start"] == {"date": "2026-11-14"}
    assert backpack["end"] == {"date": "2026-11-16"}
    assert "Club gear available: tent, stove" in backpack["description"]
    assert "https://club.example.org/rsvp.html?tripId=backpack" in backpack["description"]


def test_second_run_is_idempotent(ctx, seeded, calendar):
    sync_trips_with_calendar(ctx)
    calendar.reset_counters()

    report = sync_trips_with_calendar(ctx)

    assert calendar.mutations == 0
    assert report.unchanged == 2
    assert report.mutations == 0


def test_changed_trip_is_updated(ctx, seeded, calendar):
    sync_trips_with_calendar(ctx)
    calendar.reset_counters()
    row_index = seeded.get_column_index(TRIPS_SHEET, "location")
    seeded.update_cell(TRIPS_SHEET, 2, row_index, "Cumberland Gap")

    report = sync_trips_with_calendar(ctx)

    assert report.updated == 1
    assert len(calendar.updated) == 1
    assert calendar.events[calendar.updated[0]]["location"] == "Cumberland Gap"


def test_orphaned_tagged_event_deleted_and_foreign_event_kept(ctx, seeded, calendar):
    calendar.add("old", {"summary": "Cancelled", "extendedProperties": tag("cancelled-trip")})
    calendar.add("meeting", {"summary": "Weekly meeting"})

    report = sync_trips_with_calendar(ctx)

    assert calendar.deleted == ["old"]
    assert report.deleted == 1
    assert "meeting" in calendar.events


def test_tagged_event_is_adopted_instead_of_duplicated(ctx, seeded, calendar):
    calendar.add("existing-hike", {
        "summary": "Hike",
        "start": {"dateTime": "2026-11-07T08:00:00-05:00"},
        "end": {"dateTime": "2026-11-07T15:00:00-05:00"},
        "extendedProperties": tag("hike"),
    })
    calendar.add("dupe-hike", {"summary": "Hike", "extendedProperties": tag("hike")})

    sync_trips_with_calendar(ctx)

    hike_row = seeded.rows(TRIPS_SHEET)[0]
    assert hike_row["eventId"] == "existing-hike"
    assert "dupe-hike" in calendar.deleted
    assert "existing-hike" not in calendar.deleted
    assert len(calendar.created) == 1


def test_stored_event_missing_from_calendar_is_recreated(ctx, store, calendar):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("hike", "2026-11-07T13:00:00.000Z", eventId="deleted-by-hand"),
    ])

    report = sync_trips_with_calendar(ctx)

    assert report.created == 1
    new_id = calendar.created[0]
    assert store.rows(TRIPS_SHEET)[0]["eventId"] == new_id


def test_stored_event_outside_listing_is_updated_in_place(ctx, store, calendar, monkeypatch):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("hike", "2026-11-07T13:00:00.000Z", eventId="far-away"),
    ])
    calendar.add("far-away", {"summary": "stale"})
    monkeypatch.setattr(calendar, "list_events", lambda time_min, time_max: [])

    report = sync_trips_with_calendar(ctx)

    assert report.updated == 1
    assert calendar.created == []
    assert calendar.events["far-away"]["summary"] == "Hike"


def test_unparseable_row_is_skipped_and_its_event_kept(ctx, store, calendar):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("broken", "next tuesday", eventId="keep-me"),
        trip_row("hike", "2026-11-07T13:00:00.000Z"),
    ])
    calendar.add("keep-me", {"summary": "Broken", "extendedProperties": tag("broken")})

    report = sync_trips_with_calendar(ctx)

    assert report.skipped == 1
    assert report.created == 1
    assert "keep-me" in calendar.events
    assert calendar.deleted == []


def test_trips_ending_before_window_are_skipped(ctx, store, calendar):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("ancient", "2025-01-04T13:00:00.000Z", "2025-01-04T18:00:00.000Z"),
        trip_row("recent", "2026-09-01T13:00:00.000Z"),
    ])

    report = sync_trips_with_calendar(ctx)

    assert report.created == 1
    assert store.rows(TRIPS_SHEET)[0]["eventId"] == ""


def test_trips_starting_after_window_are_left_alone(ctx, store, calendar, monkeypatch):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        trip_row("expedition", "2028-12-01T13:00:00.000Z", eventId="far-away"),
        trip_row("hike", "2026-11-07T13:00:00.000Z"),
    ])
    calendar.add("far-away", {
        "summary": "Expedition",
        "start": {"dateTime": "2028-12-01T08:00:00", "timeZone": "America/New_York"},
        "extendedProperties": tag("expedition"),
    })

    def listed(time_min, time_max):
        cutoff = time_max.date().isoformat()
        return [e for e in calendar.events.values()
                if (e["start"].get("dateTime") or e["start"].get("date")) < cutoff]

    monkeypatch.setattr(calendar, "list_events", listed)
    first = sync_trips_with_calendar(ctx)
    assert first.created == 1
    calendar.reset_counters()

    sync_trips_with_calendar(ctx)

    assert calendar.mutations == 0
    assert "far-away" in calendar.events


def test_missing_event_id_column_still_creates(ctx, store, calendar):
    headers = [h for h in TRIP_HEADERS if h != "eventId"]
    store.add_sheet(TRIPS_SHEET, headers, [trip_row("hike", "2026-11-07T13:00:00.000Z")])

    report = sync_trips_with_calendar(ctx)

    assert report.created == 1
    assert store.cell_updates == []


def test_calendar_failure_for_one_trip_does_not_stop_others(ctx, seeded, calendar, monkeypatch):
    real_create = calendar.create_event

    def flaky(event):
        if event["summary"] == "Hike":
            raise IntegrationError("Failed to create calendar event", 500, "boom")
        return real_create(event)

    monkeypatch.setattr(calendar, "create_event", flaky)
    report = sync_trips_with_calendar(ctx)

    assert report.created == 1
    assert len(report.errors) == 1
    assert "hike" in report.errors[0]


def test_sync_needs_a_site_base_url(ctx, seeded, calendar):
    with pytest.raises(ConfigError, match="SITE_BASE_URL"):
        sync_trips_with_calendar(ctx, site_base_url="")
    assert calendar.mutations == 0


def test_same_instant_with_different_offset_is_unchanged():
    desired = {
        "summary": "Hike",
        "start": {"dateTime": "2026-11-07T08:00:00", "timeZone": "America/New_York"},
        "end": {"dateTime": "2026-11-07T15:00:00", "timeZone": "America/New_York"},
        "extendedProperties": tag("hike"),
    }
    existing = {
        "id": "e1",
        "summary": "Hike",
        "location": "",
        "start": {"dateTime": "2026-11-07T13:00:00Z"},
        "end": {"dateTime": "2026-11-07T10:00:00-05:00", "timeZone": "America/New_York"},
        "extendedProperties": tag("hike"),
    }
    assert event_needs_update(existing, desired, "America/New_York")
    existing["end"] = {"dateTime": "2026-11-07T15:00:00-05:00"}
    assert not event_needs_update(existing, desired, "America/New_York")
    existing["extendedProperties"] = {"private": {"tripId": "other", "managedBy": MANAGED_BY}}
    assert event_needs_update(existing, desired, "America/New_York")


def test_background_sync_logs_failures_instead_of_raising():
    errors = []

    class RecordingLogger(Logger):
        def error(self, message, exc_info=False):
            errors.append(message)

    def runner(site_base_url):
        raise IntegrationError("Failed to list calendar event", 503, "unavailable")

    background = BackgroundSync(runner, RecordingLogger())
    try:
        assert background.schedule().result(timeout=5) is None
    finally:
        background.shutdown()
    assert len(errors) == 1
    assert "503" in errors[0]


def test_background_sync_returns_report(ctx, seeded, calendar):
    future = ctx.background_sync.schedule("https://other.example.org/")
    report = future.result(timeout=5)
    assert isinstance(report, SyncReport)
    assert report.created == 2
    event = next(iter(calendar.events.values()))
    assert "https://other.example.org/rsvp.html" in event["description"]
