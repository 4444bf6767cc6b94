"""
Accounts: registration, login and bearer-token authentication.

Passwords are stored as bcrypt hashes. Login issues a random token; only its
sha256 is persisted.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tracker.core.db import Database, is_unique_violation
from tracker.core.errors import AuthenticationError, ConfigurationError, UsernameTaken
from tracker.features.accounts.models import ApiToken, User
from tracker.features.groups.service import add_member, ensure_group
from tracker.features.prayers.timings import parse_location

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Cairo, Egypt"
DEFAULT_TOKEN_TTL_DAYS = 30


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AccountService:
    def __init__(self, db: Database, auth_config: Optional[Dict[str, Any]] = None, groups_config: Optional[Dict[str, Any]] = None):
        self.db = db
        auth_config = auth_config or {}
        groups_config = groups_config or {}
        self.token_ttl = timedelta(days=int(auth_config.get("token_ttl_days", DEFAULT_TOKEN_TTL_DAYS)))
        self.default_group_id = int(groups_config.get("default_group_id", 1))
        self.default_group_name = groups_config.get("default_group_name", "Everyone")

    def register(
        self,
        username: str,
        password: str,
        display_name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> User:
        """Create a user and add them to the default group."""
        if not username or not password:
            raise ConfigurationError("Username and password required")
        location = location or DEFAULT_LOCATION
        parse_location(location)

        user = User(
            username=username,
            password_hash=hash_password(password),
            display_name=display_name or username,
            location=location,
        )
        with self.db.session_scope() as session:
            session.add(user)
            try:
                session.flush()
            except IntegrityError as e:
                if is_unique_violation(e):
                    raise UsernameTaken(username)
                raise
            ensure_group(session, self.default_group_id, self.default_group_name)
            add_member(session, self.default_group_id, user.id)
        logger.info(f"Registered user {user.id} ({username}) in group {self.default_group_id}")
        return user

    def login(self, username: str, password: str) -> Tuple[str, User]:
        """Return (token, user). The plain token is only ever returned here."""
        with self.db.session_scope() as session:
            user = session.execute(select(User).where(User.username == username)).scalars().first()
            if user is None or not verify_password(password or "", user.password_hash):
                logger.info(f"Failed login for {username!r}")
                raise AuthenticationError("Invalid credentials")

            token = secrets.token_urlsafe(32)
            now = _utc_now()
            session.add(
                ApiToken(
                    user_id=user.id,
                    token_hash=hash_token(token),
                    created_at=now,
                    expires_at=now + self.token_ttl,
                )
            )
        logger.info(f"User {user.id} logged in")
        return token, user

    def authenticate(self, token: Optional[str]) -> int:
        """Resolve a bearer token to a user id."""
        if not token:
            raise AuthenticationError("Unauthorized")
        with self.db.session_scope() as session:
            row = session.execute(
                select(ApiToken).where(ApiToken.token_hash == hash_token(token))
            ).scalars().first()
            if row is None or row.expires_at <= _utc_now():
                raise AuthenticationError("Invalid token")
            return row.user_id
