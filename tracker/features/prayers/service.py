"""
Service layer for prayers: validate a mark attempt against today's window,
then write it through the ledger.
"""
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from tracker.core.db import Database
from tracker.core.errors import ConfigurationError, OutOfWindow
from tracker.features.accounts.models import User
from tracker.features.prayers.ledger import MarkLedger
from tracker.features.prayers.models import PrayerMark
from tracker.features.prayers.timings import (
    DEFAULT_COUNTRY,
    PRAYERS,
    DailyTimings,
    TimingsProvider,
    parse_location,
)
from tracker.features.prayers.window import WindowPolicy

logger = logging.getLogger(__name__)


class PrayerService:
    def __init__(
        self,
        db: Database,
        provider: TimingsProvider,
        ledger: MarkLedger,
        window: Optional[WindowPolicy] = None,
        timings_config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.clock = clock
        self.provider = provider
        self.ledger = ledger
        self.window = window or WindowPolicy()
        timings_config = timings_config or {}
        self.default_city = timings_config.get("default_city", "Cairo")
        self.default_country = timings_config.get("default_country", DEFAULT_COUNTRY)

    def get_times(self, prayer_date: Optional[date] = None, city: Optional[str] = None, country: Optional[str] = None) -> DailyTimings:
        return self.provider.fetch(
            prayer_date or self.clock().date(),
            city or self.default_city,
            country or self.default_country,
        )

    def mark_prayer(self, user_id: int, prayer_date: date, prayer_name: str, now: Optional[datetime] = None) -> PrayerMark:
        """Record prayer_name for prayer_date if now falls inside its window.

        Raises OutOfWindow, AlreadyMarked, TransientError (timing source or
        storage) or ConfigurationError (unknown prayer/user, bad location).
        """
        now = now or self.clock()
        if prayer_name not in PRAYERS:
            raise ConfigurationError(f"Unknown prayer: {prayer_name!r}", details={"allowed": list(PRAYERS)})

        city, country = self._user_location(user_id)
        timings = self.provider.fetch(prayer_date, city, country)

        if not self.window.can_mark(prayer_name, timings, now):
            start, end = self.window.window_for(prayer_name, timings)
            if end <= start:
                logger.warning(
                    f"Timings for {city}, {country} on {prayer_date} are out of order at {prayer_name}: {timings.times}"
                )
            logger.info(f"Rejected {prayer_name} for user {user_id}: {now.isoformat()} outside [{start}, {end})")
            raise OutOfWindow(prayer_name, details={"start": start.isoformat(), "end": end.isoformat()})

        return self.ledger.record_mark(user_id, prayer_date, prayer_name, now)

    def calendar(self, user_id: int, month: str) -> List[PrayerMark]:
        return self.ledger.list_month(user_id, month)

    def _user_location(self, user_id: int):
        with self.db.session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise ConfigurationError(f"User not found: {user_id}", details={"user_id": user_id}, not_found=True)
            location = user.location
        return parse_location(location, self.default_country)
