from datetime import date, datetime, timedelta

import pytest

from tracker.core.errors import ConfigurationError
from tracker.features.groups.progress import (
    Member,
    ProgressAggregator,
    completion_percentage,
    rank_members,
    resolve_period,
)
from tracker.features.prayers.ledger import MarkLedger
from tracker.features.prayers.timings import PRAYERS

NOW = datetime(2024, 3, 10, 14, 0)


def _fill(ledger, user_id, days, per_day=5):
    for d in days:
        for prayer in PRAYERS[:per_day]:
            ledger.record_mark(user_id, d, prayer, datetime.combine(d, datetime.min.time()))


def test_week_period_is_exactly_seven_days():
    period = resolve_period("week", NOW)
    assert period.start == NOW - timedelta(days=7)
    assert period.days_passed == 7
    assert period.first_date == date(2024, 3, 4)
    assert period.last_date == date(2024, 3, 10)


def test_month_period_counts_partial_day():
    period = resolve_period("month", NOW)
    assert period.start == datetime(2024, 3, 1)
    assert period.days_passed == 10
    assert period.first_date == date(2024, 3, 1)

    at_midnight = resolve_period("month", datetime(2024, 3, 1))
    assert at_midnight.days_passed == 0
    assert at_midnight.first_date > at_midnight.last_date


def test_unknown_period():
    with pytest.raises(ConfigurationError):
        resolve_period("year", NOW)


def test_percentage_rounding():
    assert completion_percentage(10, 35) == 28.6
    assert completion_percentage(1, 8) == 12.5
    assert completion_percentage(1, 16) == 6.3  # 6.25 rounds half up
    assert completion_percentage(35, 35) == 100.0
    assert completion_percentage(3, 0) == 0


def test_rank_members_breaks_ties_by_username():
    period = resolve_period("week", NOW)
    members = [Member(3, "zaid", "Zaid"), Member(1, "amr", "Amr"), Member(2, "bilal", "Bilal")]
    entries = rank_members(members, {3: 4, 1: 4, 2: 9}, period)
    assert [e.username for e in entries] == ["bilal", "amr", "zaid"]


def test_week_scenario_ten_marks(db, register_user):
    user = register_user("amr")
    ledger = MarkLedger(db)
    _fill(ledger, user.id, [date(2024, 3, 8), date(2024, 3, 9)])  # 10 marks

    report = ProgressAggregator(db).build_report(1, "week", NOW)
    assert len(report) == 1
    entry = report[0]
    assert entry.marked_count == 10
    assert entry.total_possible == 35
    assert entry.percentage == 28.6


def test_zero_mark_member_is_reported(db, register_user):
    active = register_user("amr")
    register_user("bilal")
    _fill(MarkLedger(db), active.id, [date(2024, 3, 10)], per_day=2)

    report = ProgressAggregator(db).build_report(1, "month", NOW)
    assert [(e.username, e.marked_count) for e in report] == [("amr", 2), ("bilal", 0)]
    assert report[1].percentage == 0
    assert report[1].total_possible == 50


def test_marks_outside_period_are_not_counted(db, register_user):
    user = register_user("amr")
    ledger = MarkLedger(db)
    # 2024-03-03 is before the week's first counted date; February is before the month
    _fill(ledger, user.id, [date(2024, 2, 29), date(2024, 3, 3), date(2024, 3, 4)])

    week = ProgressAggregator(db).build_report(1, "week", NOW)
    month = ProgressAggregator(db).build_report(1, "month", NOW)
    assert week[0].marked_count == 5
    assert month[0].marked_count == 10


def test_report_totals_are_bounded(db, register_user):
    ledger = MarkLedger(db)
    users = [register_user(name) for name in ("a", "b", "c")]
    start = date(2024, 3, 1)
    # Every day of the month so far, plus marks in the previous month
    days = [start + timedelta(days=i) for i in range(10)] + [date(2024, 2, 28)]
    _fill(ledger, users[0].id, days)
    _fill(ledger, users[1].id, days[:3], per_day=3)

    for period in ("week", "month"):
        report = ProgressAggregator(db).build_report(1, period, NOW)
        total_possible = report[0].total_possible
        assert sum(e.marked_count for e in report) <= total_possible * len(report)
        assert all(0 <= e.percentage <= 100 for e in report)
    assert ProgressAggregator(db).build_report(1, "week", NOW)[0].percentage == 100.0


def test_unknown_group(db):
    with pytest.raises(ConfigurationError) as exc:
        ProgressAggregator(db).build_report(99, "week", NOW)
    assert exc.value.HTTP_STATUS == 404


def test_period_ending_at_midnight_keeps_first_day():
    midnight = datetime(2024, 3, 11)
    month = resolve_period("month", midnight)
    assert month.days_passed == 10
    assert (month.first_date, month.last_date) == (date(2024, 3, 1), date(2024, 3, 10))

    week = resolve_period("week", midnight)
    assert week.days_passed == 7
    assert (week.first_date, week.last_date) == (date(2024, 3, 4), date(2024, 3, 10))


def test_report_at_midnight_counts_first_day(db, register_user):
    user = register_user("amr")
    ledger = MarkLedger(db)
    _fill(ledger, user.id, [date(2024, 3, 1), date(2024, 3, 11)])

    entry = ProgressAggregator(db).build_report(1, "month", datetime(2024, 3, 11))[0]
    assert entry.marked_count == 5
    assert entry.total_possible == 50
    assert entry.percentage == 10.0

    entry = ProgressAggregator(db).build_report(1, "week", datetime(2024, 3, 8))[0]
    assert entry.marked_count == 5
    assert entry.total_possible == 35
