from datetime import date, datetime, time

import pytest
import yaml
from fastapi.testclient import TestClient

from tracker.api import create_app
from tracker.core.app import TrackerApp
from tracker.core.config import Config
from tracker.core.db import Database
from tracker.features.prayers.timings import TimingsProvider

DEFAULT_CLOCK = {
    "Fajr": "05:00",
    "Dhuhr": "12:00",
    "Asr": "15:30",
    "Maghrib": "18:00",
    "Isha": "19:30",
}


class FakeProvider(TimingsProvider):
    """Returns the same clock times for any date; records every request."""

    def __init__(self, clock_times=None):
        super().__init__({})
        self.clock_times = dict(clock_times or DEFAULT_CLOCK)
        self.calls = []

    def fetch(self, prayer_date, city, country):
        self.calls.append((prayer_date, city, country))
        return self._build_timings(prayer_date, city, country, self.clock_times)


def at(day: date, hhmm: str) -> datetime:
    hh, mm = hhmm.split(":")
    return datetime.combine(day, time(int(hh), int(mm)))


@pytest.fixture
def db(tmp_path):
    database = Database(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield database
    database.dispose()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "database": {"path": str(tmp_path / "config.db")},
        "logging": {"level": "DEBUG", "file": str(tmp_path / "tracker.log")},
    }))
    cfg = Config(config_path=str(path))
    yield cfg
    cfg.cleanup()


@pytest.fixture
def tracker_app(config, db, provider):
    return TrackerApp(config, database=db, provider=provider, setup_logging=False)


@pytest.fixture
def client(tracker_app):
    return TestClient(create_app(tracker_app))


@pytest.fixture
def register_user(tracker_app):
    def _register(username, location="Cairo, Egypt", display_name=None):
        return tracker_app.accounts.register(username, "secret", display_name=display_name, location=location)
    return _register
