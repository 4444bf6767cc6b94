"""
Prayer API: timings lookup, mark attempts, and the monthly calendar.
"""
import datetime as dt
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from tracker.features.accounts.api import bearer_user


class MarkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: dt.date
    prayer_name: str = Field(alias="prayerName")


class MarkResponse(BaseModel):
    success: bool = True


class PrayerMarkResponse(BaseModel):
    """Pydantic view of PrayerMark; serializes from ORM."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    user_id: int
    date: dt.date
    prayer_name: str
    marked_at: dt.datetime
    status: str


class CalendarResponse(BaseModel):
    marks: List[PrayerMarkResponse]


class TimesResponse(BaseModel):
    times: Dict[str, dt.datetime]


def get_router(tracker_app: Any) -> Optional[APIRouter]:
    """Return router for prayer routes."""
    router = APIRouter(tags=["Prayers"])
    current_user = bearer_user(tracker_app)

    @router.get("/prayers/times", response_model=TimesResponse)
    def get_times(date: Optional[dt.date] = None, city: Optional[str] = None, country: Optional[str] = None) -> TimesResponse:
        """Today's (or the given date's) five prayer times for a city."""
        timings = tracker_app.prayers.get_times(date, city, country)
        return TimesResponse(times=timings.times)

    @router.post("/prayer/mark", response_model=MarkResponse)
    def mark_prayer(body: MarkRequest, user_id: int = Depends(current_user)) -> MarkResponse:
        """Mark a prayer as done if now is inside its window."""
        tracker_app.prayers.mark_prayer(user_id, body.date, body.prayer_name)
        return MarkResponse()

    @router.get("/calendar/{user_id}", response_model=CalendarResponse)
    def get_calendar(user_id: int, month: str, _caller: int = Depends(current_user)) -> CalendarResponse:
        """All marks for a user in a YYYY-MM month."""
        marks = tracker_app.prayers.calendar(user_id, month)
        return CalendarResponse(marks=[PrayerMarkResponse.model_validate(m) for m in marks])

    return router
