from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, status, Query, Response

from app.auth import get_current_user_id
from app.clock import TimeProvider
from app.dependencies import get_checkin_service, get_checkin_store, get_clock
from app.services.checkins import CheckinService, CheckinStore
from app.schemas import (
    CheckinCreate,
    CheckinUpdate,
    CheckinResponse,
    CheckinListResponse,
)

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


@router.get("", response_model=CheckinListResponse)
async def list_checkins(
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: Annotated[CheckinStore, Depends(get_checkin_store)],
    start_date: date | None = Query(None, description="Filter check-ins from this day"),
    end_date: date | None = Query(None, description="Filter check-ins until this day"),
    category_id: int | None = Query(None, description="Only this category"),
):
    """List the current user's check-ins, newest first."""
    checkins = await store.list_for_user(user_id, start=start_date, end=end_date, category_id=category_id)
    return CheckinListResponse(checkins=checkins, total=len(checkins))


@router.post("", response_model=CheckinResponse)
async def record_checkin(
    checkin_data: CheckinCreate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[CheckinService, Depends(get_checkin_service)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
):
    """Check in for a category. Repeating it for the same day updates mood and notes."""
    result = await service.record(
        user_id,
        checkin_data.category_id,
        today=clock.today(),
        day=checkin_data.day,
        mood=checkin_data.mood,
        notes=checkin_data.notes,
    )
    return result.checkin


@router.put("/{category_id}/{checkin_day}", response_model=CheckinResponse)
async def update_checkin(
    category_id: int,
    checkin_day: date,
    checkin_data: CheckinUpdate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[CheckinService, Depends(get_checkin_service)],
):
    """Update mood or notes of an existing check-in."""
    return await service.update(
        user_id,
        category_id,
        checkin_day,
        mood=checkin_data.mood,
        notes=checkin_data.notes,
    )


@router.delete("/{category_id}/{checkin_day}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_checkin(
    category_id: int,
    checkin_day: date,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[CheckinService, Depends(get_checkin_service)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
):
    """Remove a check-in. Removing a day that was never checked in is fine."""
    await service.remove(user_id, category_id, checkin_day, today=clock.today())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
