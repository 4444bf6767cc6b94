"""
SQLAlchemy models for prayer marks: one row per (user, date, prayer), never updated.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, ForeignKey, UniqueConstraint

from tracker.core.db import Base


class PrayerMark(Base):
    """A user's record of a prayer performed inside its window. marked_at is local wall-clock time."""
    __tablename__ = "prayer_marks"
    __table_args__ = (
        UniqueConstraint("user_id", "date", "prayer_name", name="uq_prayer_mark"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    prayer_name = Column(String(16), nullable=False)
    marked_at = Column(DateTime(timezone=False), nullable=False)
    status = Column(String(16), nullable=False, default="done")
