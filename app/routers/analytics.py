from datetime import date, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user_id
from app.clock import TimeProvider
from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_clock
from app.errors import InvalidArgument
from app.schemas import (
    AnalyticsOverviewResponse,
    AnalyticsResponse,
    CategoryStatsResponse,
    DailyCompletionResponse,
    MoodPointResponse,
    StreakAnalysisResponse,
    WeeklyStatsResponse,
)
from app.services import rollups
from app.services.categories import count_active_categories, get_active_category

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsResponse)
async def get_analytics(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
    period: int | None = Query(None, ge=1, description="Number of days to analyse"),
    category_id: int | None = Query(None, description="Only this category"),
):
    """Completion, mood and streak overview for the last ``period`` days."""
    period = period or settings.analytics_default_period
    if period > settings.analytics_max_period:
        raise InvalidArgument(
            f"Period can be at most {settings.analytics_max_period} days",
            details={"period": period},
        )
    if category_id is not None:
        await get_active_category(db, category_id)

    total = await count_active_categories(db)
    result = await rollups.analytics(
        db,
        user_id,
        period,
        clock.today(),
        total,
        category_id=category_id,
        grace_days=settings.streak_grace_days,
    )

    return AnalyticsResponse(
        overview=AnalyticsOverviewResponse(
            period_days=result.period_days,
            start=result.start,
            end=result.end,
            total_checkins=result.total_checkins,
            days_with_data=result.days_with_data,
            average_completion_rate=result.average_completion_rate,
            data_completeness=result.data_completeness,
        ),
        daily=[DailyCompletionResponse.model_validate(d) for d in result.daily],
        categories=[CategoryStatsResponse.model_validate(c) for c in result.categories],
        best_days=[DailyCompletionResponse.model_validate(d) for d in result.best_days],
        worst_days=[DailyCompletionResponse.model_validate(d) for d in result.worst_days],
        mood_trend=[MoodPointResponse(day=d.day, average_mood=d.average_mood) for d in result.daily],
        streak_analysis=StreakAnalysisResponse.model_validate(result.streak_analysis),
    )


@router.get("/weekly", response_model=WeeklyStatsResponse)
async def get_weekly_stats(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    clock: Annotated[TimeProvider, Depends(get_clock)],
    end_date: date | None = Query(None, description="Last day of the week, defaults to today"),
):
    """Check-in totals, perfect days and completion rate for a trailing week."""
    end = end_date or clock.today()
    start = end - timedelta(days=settings.weekly_window_days - 1)
    total = await count_active_categories(db)
    stats = await rollups.weekly_stats(db, user_id, start, end, total)
    return WeeklyStatsResponse.model_validate(stats)
