"""
Group progress: per-member completion over the current week or month.

A report counts every member of the group, including members with no marks.
The denominator is five prayers per elapsed day, where a partially elapsed
day counts as a whole one.
"""
import logging
import math
from collections import namedtuple
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError

from tracker.core.db import Database, is_transient_db_error
from tracker.core.errors import ConfigurationError, TransientError
from tracker.features.accounts.models import User
from tracker.features.groups.models import Group, GroupMember
from tracker.features.prayers.models import PrayerMark
from tracker.features.prayers.timings import PRAYERS

logger = logging.getLogger(__name__)

WEEK = "week"
MONTH = "month"
PERIODS = (WEEK, MONTH)

PRAYERS_PER_DAY = len(PRAYERS)

ProgressEntry = namedtuple(
    "ProgressEntry",
    [
        "user_id",
        "username",
        "display_name",
        "marked_count",
        "total_possible",
        "percentage",  # float, one decimal place
    ],
)

# first_date..last_date (inclusive) are the mark dates that count toward the period
ReportPeriod = namedtuple("ReportPeriod", ["name", "start", "end", "days_passed", "first_date", "last_date"])

Member = namedtuple("Member", ["user_id", "username", "display_name"])


def resolve_period(period: str, now: datetime) -> ReportPeriod:
    """week: exactly 7x24h before now. month: local midnight on the 1st of now's month."""
    if period == WEEK:
        start = now - timedelta(days=7)
    elif period == MONTH:
        start = datetime(now.year, now.month, 1)
    else:
        raise ConfigurationError(f"Unknown period: {period!r}", details={"allowed": list(PERIODS)})

    days_passed = max(0, math.ceil((now - start) / timedelta(days=1)))

    # A mark's date counts as that date's midnight, so it must not fall before start
    first_date = start.date() if start.time() == time(0) else start.date() + timedelta(days=1)
    # At exactly midnight no part of now's date has elapsed
    last_date = now.date() if now.time() != time(0) else now.date() - timedelta(days=1)
    if days_passed > 0:
        first_date = max(first_date, last_date - timedelta(days=days_passed - 1))
    else:
        first_date = last_date + timedelta(days=1)

    return ReportPeriod(period, start, now, days_passed, first_date, last_date)


def completion_percentage(marked_count: int, total_possible: int) -> float:
    if total_possible <= 0:
        return 0.0
    ratio = Decimal(marked_count * 100) / Decimal(total_possible)
    return float(ratio.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def rank_members(members: Iterable[Member], counts: Dict[int, int], report_period: ReportPeriod) -> List[ProgressEntry]:
    """Build entries for every member (missing counts are 0), best first.

    Ties on marked_count fall back to username, then user_id.
    """
    total_possible = PRAYERS_PER_DAY * report_period.days_passed
    entries = []
    for member in members:
        marked = int(counts.get(member.user_id, 0))
        entries.append(
            ProgressEntry(
                user_id=member.user_id,
                username=member.username,
                display_name=member.display_name,
                marked_count=marked,
                total_possible=total_possible,
                percentage=completion_percentage(marked, total_possible),
            )
        )
    entries.sort(key=lambda e: (-e.marked_count, e.username or "", e.user_id))
    return entries


class ProgressAggregator:
    def __init__(self, db: Database, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    def build_report(self, group_id: int, period: str, now: Optional[datetime] = None) -> List[ProgressEntry]:
        now = now or self.clock()
        report_period = resolve_period(period, now)
        try:
            members, counts = self._load_counts(group_id, report_period.first_date, report_period.last_date)
        except SQLAlchemyError as e:
            logger.exception(f"Storage failure building report for group {group_id}: {e}")
            if is_transient_db_error(e):
                raise TransientError("Storage unavailable", details={"reason": str(e)})
            raise
        entries = rank_members(members, counts, report_period)
        logger.debug(
            f"Progress report group={group_id} period={period} days={report_period.days_passed} members={len(entries)}"
        )
        return entries

    def _load_counts(self, group_id: int, first_date: date, last_date: date):
        """Members of the group left-joined to their mark counts in [first_date, last_date]."""
        with self.db.session_scope() as session:
            group = session.get(Group, group_id)
            if group is None:
                raise ConfigurationError(f"Group not found: {group_id}", details={"group_id": group_id}, not_found=True)

            stmt = (
                select(User.id, User.username, User.display_name, func.count(PrayerMark.id))
                .join(GroupMember, GroupMember.user_id == User.id)
                .outerjoin(
                    PrayerMark,
                    and_(
                        PrayerMark.user_id == User.id,
                        PrayerMark.date >= first_date,
                        PrayerMark.date <= last_date,
                    ),
                )
                .where(GroupMember.group_id == group_id)
                .group_by(User.id, User.username, User.display_name)
            )
            rows = session.execute(stmt).all()

        members = [Member(r[0], r[1], r[2]) for r in rows]
        counts = {r[0]: r[3] for r in rows}
        return members, counts
