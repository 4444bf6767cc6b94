"""
Group API: ranked completion report for a group over the current week or month.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tracker.features.accounts.api import bearer_user


class ProgressEntryResponse(BaseModel):
    user_id: int = Field(serialization_alias="userId")
    username: str
    display_name: str = Field(serialization_alias="displayName")
    marked_count: int = Field(serialization_alias="markedCount")
    total_possible: int = Field(serialization_alias="totalPossible")
    percentage: float


class ProgressResponse(BaseModel):
    progress: List[ProgressEntryResponse]


def get_router(tracker_app: Any) -> Optional[APIRouter]:
    """Return router for group routes."""
    router = APIRouter(tags=["Groups"])
    current_user = bearer_user(tracker_app)

    @router.get("/group/{group_id}/progress", response_model=ProgressResponse)
    def get_progress(group_id: int, period: str = "month", _caller: int = Depends(current_user)) -> ProgressResponse:
        """Members ranked by marked prayers; period is "week" or "month"."""
        entries = tracker_app.progress.build_report(group_id, period)
        return ProgressResponse(progress=[ProgressEntryResponse(**e._asdict()) for e in entries])

    return router
