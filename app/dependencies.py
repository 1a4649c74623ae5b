"""
FastAPI dependencies.

Services are built per request around the request's database session.
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import TimeProvider
from app.config import Settings, get_settings
from app.database import get_db
from app.services.checkins import CheckinService, CheckinStore
from app.services.dashboard import DashboardAggregator
from app.services.streaks import StreakCalculator


def get_clock(
    settings: Annotated[Settings, Depends(get_settings)],
    x_timezone: Annotated[str | None, Header()] = None,
) -> TimeProvider:
    """Reference day follows the caller's timezone when they send one."""
    return TimeProvider(x_timezone or settings.default_timezone)


def get_checkin_store(db: Annotated[AsyncSession, Depends(get_db)]) -> CheckinStore:
    return CheckinStore(db)


def get_checkin_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CheckinService:
    return CheckinService(db, grace_days=settings.streak_grace_days)


def get_streak_calculator(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreakCalculator:
    return StreakCalculator(db, grace_days=settings.streak_grace_days)


def get_dashboard_aggregator(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DashboardAggregator:
    return DashboardAggregator(
        db,
        expected_categories=settings.expected_category_count,
        window_days=settings.weekly_window_days,
        grace_days=settings.streak_grace_days,
    )
