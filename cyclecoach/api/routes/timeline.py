"""API routes for the split cycle timeline."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cyclecoach.api.routes.dependencies import get_current_user_id
from cyclecoach.core.exceptions import NotFoundError
from cyclecoach.db.database import get_read_db
from cyclecoach.schemas.base import APIResponse, ResponseMeta
from cyclecoach.schemas.timeline import SplitTimelineResponse
from cyclecoach.services.timeline import TimelineService

router = APIRouter()


@router.get("", response_model=APIResponse[SplitTimelineResponse])
async def get_split_timeline(
    db: AsyncSession = Depends(get_read_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Day-by-day status of the user's current cycle.

    A user without an active split gets `data: null` rather than an error.
    """
    try:
        timeline = await TimelineService(db).get_timeline(user_id)
    except NotFoundError as e:
        return APIResponse[SplitTimelineResponse](data=None, meta=ResponseMeta(warnings=[e.message]))
    return APIResponse[SplitTimelineResponse](data=timeline, meta=ResponseMeta())
