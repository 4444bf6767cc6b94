from contextlib import contextmanager
from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tracker.core.errors import TransientError
from tracker.features.groups.progress import ProgressAggregator
from tracker.features.prayers.ledger import MarkLedger

DAY = date(2024, 3, 10)


class LockedDatabase:
    """Every session fails the way a locked or unreachable database does."""

    def __init__(self):
        self.attempts = 0

    @contextmanager
    def session_scope(self):
        self.attempts += 1
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        yield


def _assert_transient(exc_info):
    assert exc_info.value.is_retryable
    assert exc_info.value.error_code == "TRANSIENT"
    assert exc_info.value.to_dict()["retryable"] is True


def test_ledger_reports_storage_outage_as_transient():
    ledger = MarkLedger(LockedDatabase())
    with pytest.raises(TransientError) as exc:
        ledger.record_mark(1, DAY, "Fajr", datetime(2024, 3, 10, 5, 0))
    _assert_transient(exc)

    with pytest.raises(TransientError) as exc:
        ledger.list_marks(1, DAY, date(2024, 3, 11))
    _assert_transient(exc)


def test_report_reports_storage_outage_as_transient():
    locked = LockedDatabase()
    with pytest.raises(TransientError) as exc:
        ProgressAggregator(locked).build_report(1, "week", datetime(2024, 3, 10, 14, 0))
    _assert_transient(exc)
    assert locked.attempts == 1


def test_not_null_violation_is_not_a_duplicate(db):
    ledger = MarkLedger(db)
    with pytest.raises(IntegrityError):
        ledger.record_mark(1, DAY, None, datetime(2024, 3, 10, 5, 0))
    assert ledger.list_marks(1, DAY, date(2024, 3, 11)) == []


def _login(client):
    client.post("/auth/register", json={"username": "amr", "password": "pw"})
    rv = client.post("/auth/login", json={"username": "amr", "password": "pw"})
    return {"Authorization": f"Bearer {rv.json()['token']}"}


def test_api_returns_503_when_reports_cannot_read(client, tracker_app):
    headers = _login(client)
    tracker_app.progress.db = LockedDatabase()

    rv = client.get("/group/1/progress", params={"period": "week"}, headers=headers)
    assert rv.status_code == 503
    assert rv.json() == {"error": "Storage unavailable", "code": "TRANSIENT", "retryable": True}


def test_api_returns_503_when_token_lookup_fails(client, tracker_app):
    headers = _login(client)
    tracker_app.accounts.db = LockedDatabase()

    rv = client.get("/calendar/1", params={"month": "2024-03"}, headers=headers)
    assert rv.status_code == 503
    assert rv.json()["retryable"] is True
    assert rv.json()["code"] == "TRANSIENT"
