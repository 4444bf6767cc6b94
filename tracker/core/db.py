"""
SQLAlchemy engine, session, and base. DB URL from config or default path.
"""
import logging
from pathlib import Path
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_DIR = Path.home() / ".prayer_tracker"

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


def resolve_db_url(config_data: Optional[Dict[str, Any]] = None) -> str:
    """database.url wins, then database.path as a SQLite file, then the default file."""
    db_config = (config_data or {}).get("database") or {}
    if db_config.get("url"):
        return db_config["url"]
    path = db_config.get("path")
    if path:
        path = Path(path).expanduser().resolve()
    else:
        path = DEFAULT_DB_DIR / "tracker.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


class Database:
    """Owns one engine and session factory. Created once and handed to each component."""

    def __init__(self, config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None):
        self.url = db_url or resolve_db_url(config_data)
        self.engine = self._create_engine(self.url)

        # Import model modules so tables are registered with Base
        from tracker.features.accounts import models as _  # noqa: F401
        from tracker.features.groups import models as _  # noqa: F401
        from tracker.features.prayers import models as _  # noqa: F401

        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info(f"Database initialized: {self.url.split('?')[0]}")

    @staticmethod
    def _create_engine(url: str):
        if not url.startswith("sqlite"):
            return create_engine(url, echo=False, future=True, pool_pre_ping=True)
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                echo=False,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT, "check_same_thread": False},
        )

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager for a single DB session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


def is_transient_db_error(exc: Exception) -> bool:
    """Connection drops and lock timeouts are worth retrying; constraint violations are not."""
    return isinstance(exc, OperationalError)


UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: Exception) -> bool:
    """True for a unique/primary key violation; False for NOT NULL, foreign key and check failures."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig or exc).lower()
    return "unique" in message or "duplicate" in message
