import json
from unittest import mock

import pytest

from club_trip_sync import cli
from club_trip_sync.errors import AuthError
from club_trip_sync.log import LogLevel
from club_trip_sync.site_settings import DEFAULT_SITE_SETTINGS
from club_trip_sync.trips import TRIP_HEADERS, TRIPS_SHEET


@pytest.fixture
def wired(ctx, config, monkeypatch):
    monkeypatch.setattr(cli.Config, "from_env", classmethod(lambda cls: config))
    monkeypatch.setattr(cli.AppContext, "from_config", classmethod(lambda cls, cfg, logger=None: ctx))
    return ctx


def test_verbosity_flags():
    assert cli.parse_args(["sync"]).verbose == 0
    assert cli.parse_args(["-vv", "sync"]).verbose == 2
    assert cli.parse_args(["sync", "--site-base-url", "https://x.org"]).site_base_url == "https://x.org"


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_sync_prints_report(wired, store, calendar, capsys):
    store.add_sheet(TRIPS_SHEET, TRIP_HEADERS, [
        {"tripId": "hike", "title": "Hike", "start": "2026-11-07T13:00:00.000Z"},
    ])
    assert cli.main(["sync"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["created"] == 1
    assert len(calendar.created) == 1


def test_settings_prints_effective_settings(wired, capsys):
    assert cli.main(["settings"]) == 0
    assert json.loads(capsys.readouterr().out) == DEFAULT_SITE_SETTINGS


def test_failures_exit_nonzero(wired):
    # no Trips sheet
    assert cli.main(["sync"]) == 1


def test_token_check(config, monkeypatch):
    monkeypatch.setattr(cli.Config, "from_env", classmethod(lambda cls: config))
    with mock.patch("club_trip_sync.cli.get_access_token", return_value="ya29.token") as minted:
        assert cli.main(["-v", "token"]) == 0
    minted.assert_called_once_with(config.service_account_email, config.private_key)

    with mock.patch("club_trip_sync.cli.get_access_token", side_effect=AuthError("Failed to get access token", 400, "bad")):
        assert cli.main(["token"]) == 1


def test_log_level_from_verbosity():
    assert cli.get_log_level(0) is LogLevel.NORMAL
    assert cli.get_log_level(1) is LogLevel.WARN
    assert cli.get_log_level(3) is LogLevel.DEBUG
