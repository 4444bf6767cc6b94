"""
Mark ledger: save and load prayer marks.

Uniqueness of (user, date, prayer) is owned by the uq_prayer_mark constraint.
Two racing inserts both reach the database; the loser gets a unique violation,
reported as AlreadyMarked. Other integrity errors propagate unchanged. There
is no read-before-write.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tracker.core.db import Database, is_transient_db_error, is_unique_violation
from tracker.core.errors import AlreadyMarked, ConfigurationError, TransientError
from tracker.features.prayers.models import PrayerMark
from tracker.features.prayers.timings import PRAYERS

logger = logging.getLogger(__name__)

_PRAYER_ORDER = case({name: i for i, name in enumerate(PRAYERS)}, value=PrayerMark.prayer_name, else_=len(PRAYERS))


class MarkLedger:
    def __init__(self, db: Database):
        self.db = db

    def record_mark(self, user_id: int, mark_date: date, prayer_name: str, marked_at: datetime) -> PrayerMark:
        """Insert one mark. Raises AlreadyMarked on duplicate, TransientError if storage is unavailable."""
        mark = PrayerMark(
            user_id=user_id,
            date=mark_date,
            prayer_name=prayer_name,
            marked_at=marked_at,
            status="done",
        )
        try:
            with self.db.session_scope() as session:
                session.add(mark)
                session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.info(f"Duplicate mark rejected: user={user_id} date={mark_date} prayer={prayer_name}")
                raise AlreadyMarked(user_id, mark_date, prayer_name)
            logger.error(f"Integrity error recording mark for user {user_id}: {e}")
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Storage failure recording mark for user {user_id}: {e}")
            if is_transient_db_error(e):
                raise TransientError("Storage unavailable", details={"reason": str(e)})
            raise
        logger.info(f"Marked {prayer_name} on {mark_date} for user {user_id} at {marked_at.isoformat()}")
        return mark

    def list_marks(self, user_id: int, start: date, exclusive_end: date) -> List[PrayerMark]:
        """Marks with start <= date < exclusive_end, ordered by date then prayer order."""
        try:
            with self.db.session_scope() as session:
                stmt = (
                    select(PrayerMark)
                    .where(
                        PrayerMark.user_id == user_id,
                        PrayerMark.date >= start,
                        PrayerMark.date < exclusive_end,
                    )
                    .order_by(PrayerMark.date.asc(), _PRAYER_ORDER)
                )
                return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            if is_transient_db_error(e):
                raise TransientError("Storage unavailable", details={"reason": str(e)})
            raise

    def list_month(self, user_id: int, month: str) -> List[PrayerMark]:
        """Marks for a "YYYY-MM" month: [first of month, first of next month)."""
        first = parse_month(month)
        return self.list_marks(user_id, first, first_of_next_month(first))


def parse_month(month: str) -> date:
    try:
        return datetime.strptime(str(month), "%Y-%m").date()
    except (ValueError, TypeError):
        raise ConfigurationError("Malformed month, expected YYYY-MM", details={"month": month})


def first_of_next_month(first: date) -> date:
    return (first.replace(day=28) + timedelta(days=4)).replace(day=1)
