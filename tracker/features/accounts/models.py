"""
SQLAlchemy models for accounts: users and hashed API tokens.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey

from tracker.core.db import Base


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """A registered user. location is "City, Country" (country optional)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False, default="Cairo, Egypt")
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)


class ApiToken(Base):
    """Bearer token issued at login. Only the sha256 of the token is stored."""
    __tablename__ = "api_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)
    expires_at = Column(DateTime(timezone=False), nullable=False)  # naive UTC
