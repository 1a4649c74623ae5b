from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth import get_current_user_id
from app.clock import TimeProvider
from app.dependencies import get_clock, get_dashboard_aggregator
from app.schemas import DashboardResponse
from app.services.dashboard import DashboardAggregator

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    user_id: Annotated[str, Depends(get_current_user_id)],
    aggregator: Annotated[DashboardAggregator, Depends(get_dashboard_aggregator)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
    as_of: date | None = Query(None, description="Day to show, defaults to today"),
):
    """Today's check-ins, streaks and the trailing week for the current user."""
    snapshot = await aggregator.get(user_id, as_of or clock.today())
    return DashboardResponse.model_validate(snapshot, from_attributes=True)
