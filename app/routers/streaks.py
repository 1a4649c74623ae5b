from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user_id
from app.clock import TimeProvider
from app.database import get_db
from app.dependencies import get_clock, get_streak_calculator
from app.schemas import StreakListResponse, StreakResponse
from app.services.categories import get_active_category
from app.services.streaks import StreakCalculator

router = APIRouter(prefix="/api/streaks", tags=["streaks"])


@router.get("", response_model=StreakListResponse)
async def list_streaks(
    user_id: Annotated[str, Depends(get_current_user_id)],
    calculator: Annotated[StreakCalculator, Depends(get_streak_calculator)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
):
    """Streaks for every category the user has checked in to."""
    streaks = await calculator.list_for_user(user_id, today=clock.today())
    return StreakListResponse(streaks=[StreakResponse.model_validate(s) for s in streaks])


@router.get("/{category_id}", response_model=StreakResponse)
async def get_streak(
    category_id: int,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    calculator: Annotated[StreakCalculator, Depends(get_streak_calculator)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
):
    """Current and longest streak for one category. Zeros if never checked in."""
    await get_active_category(db, category_id)
    streak = await calculator.get(user_id, category_id, today=clock.today())
    return StreakResponse.model_validate(streak)


@router.post("/{category_id}/recompute", response_model=StreakResponse)
async def recompute_streak(
    category_id: int,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    calculator: Annotated[StreakCalculator, Depends(get_streak_calculator)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
):
    """Rebuild the streak from check-in history. Safe to call repeatedly."""
    await get_active_category(db, category_id)
    streak = await calculator.recompute(user_id, category_id, clock.today())
    return StreakResponse.model_validate(streak)
