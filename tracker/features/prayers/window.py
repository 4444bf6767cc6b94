"""
Prayer window rules: a prayer may be marked from its own start until the next
prayer starts, or until the end of its calendar day for the last prayer.
"""
from datetime import datetime, time
from typing import Optional, Tuple

from .timings import PRAYERS, DailyTimings

END_OF_DAY = time(23, 59, 59, 999000)


def next_prayer(prayer: str) -> Optional[str]:
    idx = PRAYERS.index(prayer)
    return PRAYERS[idx + 1] if idx < len(PRAYERS) - 1 else None


class WindowPolicy:
    """Pure: no state, no I/O. Safe to share across threads."""

    def window_for(self, prayer: str, timings: DailyTimings) -> Tuple[datetime, datetime]:
        """Return the half-open interval [start, end) during which prayer can be marked."""
        start = timings.times[prayer]
        following = next_prayer(prayer)
        if following is not None:
            end = timings.times[following]
        else:
            end = datetime.combine(start.date(), END_OF_DAY)
        return start, end

    def can_mark(self, prayer: str, timings: DailyTimings, now: datetime) -> bool:
        start, end = self.window_for(prayer, timings)
        # Non-monotonic upstream data closes the window rather than widening it
        if end <= start:
            return False
        return start <= now < end
