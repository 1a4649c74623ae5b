"""
Per-day completion rollups and the analytics built on top of them.

``daily_rollups`` is a cache over ``checkins``: it is refreshed after every
write and rebuilt by the reconciliation job, and may lag behind briefly.
Weekly stats and the all-category analytics series read the cache; a
single-category series has no cached rollup and groups ``checkins`` directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import upsert
from app.models import Category, Checkin, DailyRollup, utcnow
from app.services.streaks import StreakCalculator, StreakState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DailyCompletion:
    day: date
    categories_completed: int
    completion_rate: float
    average_mood: float | None = None


def completion_rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(completed / total, 4)


def date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def build_series(
    counts: dict[date, int],
    start: date,
    end: date,
    total_categories: int,
    moods: dict[date, float] | None = None,
) -> list[DailyCompletion]:
    """One entry per calendar day from ``start`` to ``end``, zero-filled."""
    moods = moods or {}
    return [
        DailyCompletion(
            day=day,
            categories_completed=counts.get(day, 0),
            completion_rate=completion_rate(counts.get(day, 0), total_categories),
            average_mood=moods.get(day),
        )
        for day in date_range(start, end)
    ]


async def completion_series(
    db: AsyncSession,
    user_id: str,
    start: date,
    end: date,
    total_categories: int,
    category_id: int | None = None,
) -> list[DailyCompletion]:
    query = (
        select(
            Checkin.day,
            func.count(Checkin.category_id.distinct()).label("completed"),
            func.avg(Checkin.mood).label("average_mood"),
        )
        .select_from(Checkin)
        .join(Category, Category.id == Checkin.category_id)
        .where(
            Checkin.user_id == user_id,
            Category.active.is_(True),
            Checkin.day >= start,
            Checkin.day <= end,
        )
        .group_by(Checkin.day)
    )
    if category_id is not None:
        query = query.where(Checkin.category_id == category_id)

    result = await db.execute(query)
    counts: dict[date, int] = {}
    moods: dict[date, float] = {}
    for row in result:
        counts[row.day] = int(row.completed)
        if row.average_mood is not None:
            moods[row.day] = round(float(row.average_mood), 2)
    return build_series(counts, start, end, total_categories, moods)


async def rollup_series(
    db: AsyncSession,
    user_id: str,
    start: date,
    end: date,
    total_categories: int,
) -> list[DailyCompletion]:
    """Same shape as ``completion_series``, served from ``daily_rollups``."""
    result = await db.execute(
        select(
            DailyRollup.day,
            DailyRollup.categories_completed,
            DailyRollup.total_mood,
            DailyRollup.mood_entries,
        ).where(
            DailyRollup.user_id == user_id,
            DailyRollup.day >= start,
            DailyRollup.day <= end,
        )
    )
    counts: dict[date, int] = {}
    moods: dict[date, float] = {}
    for row in result:
        counts[row.day] = row.categories_completed
        if row.mood_entries and row.total_mood is not None:
            moods[row.day] = round(row.total_mood / row.mood_entries, 2)
    return build_series(counts, start, end, total_categories, moods)


async def refresh_daily_rollup(db: AsyncSession, user_id: str, day: date, total_categories: int) -> None:
    """Recompute the cached rollup for one user and day."""
    result = await db.execute(
        select(
            func.count(Checkin.category_id.distinct()).label("completed"),
            func.sum(Checkin.mood).label("total_mood"),
            func.count(Checkin.mood).label("mood_entries"),
        )
        .select_from(Checkin)
        .join(Category, Category.id == Checkin.category_id)
        .where(Checkin.user_id == user_id, Checkin.day == day, Category.active.is_(True))
    )
    row = result.one()
    completed = int(row.completed or 0)

    if completed == 0:
        await db.execute(
            delete(DailyRollup).where(DailyRollup.user_id == user_id, DailyRollup.day == day)
        )
        return

    stmt = upsert(db, DailyRollup).values(
        user_id=user_id,
        day=day,
        categories_completed=completed,
        completion_rate=completion_rate(completed, total_categories),
        total_mood=row.total_mood,
        mood_entries=int(row.mood_entries or 0),
        updated_at=utcnow(),
    )
    await db.execute(
        stmt.on_conflict_do_update(
            index_elements=["user_id", "day"],
            set_={
                "categories_completed": stmt.excluded.categories_completed,
                "completion_rate": stmt.excluded.completion_rate,
                "total_mood": stmt.excluded.total_mood,
                "mood_entries": stmt.excluded.mood_entries,
                "updated_at": stmt.excluded.updated_at,
            },
        )
    )


async def rebuild_daily_rollups(db: AsyncSession, user_id: str, total_categories: int) -> int:
    """Drop and rebuild every cached rollup for a user. Returns the number of days."""
    await db.execute(delete(DailyRollup).where(DailyRollup.user_id == user_id))

    result = await db.execute(
        select(
            Checkin.day,
            func.count(Checkin.category_id.distinct()).label("completed"),
            func.sum(Checkin.mood).label("total_mood"),
            func.count(Checkin.mood).label("mood_entries"),
        )
        .select_from(Checkin)
        .join(Category, Category.id == Checkin.category_id)
        .where(Checkin.user_id == user_id, Category.active.is_(True))
        .group_by(Checkin.day)
    )
    rows = [
        {
            "user_id": user_id,
            "day": row.day,
            "categories_completed": int(row.completed),
            "completion_rate": completion_rate(int(row.completed), total_categories),
            "total_mood": row.total_mood,
            "mood_entries": int(row.mood_entries or 0),
            "updated_at": utcnow(),
        }
        for row in result
    ]
    if rows:
        await db.execute(upsert(db, DailyRollup).values(rows))
    return len(rows)


@dataclass(frozen=True, slots=True)
class WeeklyStats:
    start: date
    end: date
    total_checkins: int
    perfect_days: int
    completion_rate: float  # percent of possible check-ins


async def weekly_stats(db: AsyncSession, user_id: str, start: date, end: date, total_categories: int) -> WeeklyStats:
    series = await rollup_series(db, user_id, start, end, total_categories)
    total_checkins = sum(day.categories_completed for day in series)
    perfect_days = sum(
        1 for day in series if total_categories > 0 and day.categories_completed >= total_categories
    )
    possible = total_categories * len(series)
    rate = round(total_checkins / possible * 100, 2) if possible else 0.0
    return WeeklyStats(
        start=start,
        end=end,
        total_checkins=total_checkins,
        perfect_days=perfect_days,
        completion_rate=rate,
    )


@dataclass(frozen=True, slots=True)
class CategoryStats:
    category_id: int
    slug: str
    color: str
    count: int
    average_mood: float | None


async def category_stats(
    db: AsyncSession, user_id: str, start: date, end: date, category_id: int | None = None
) -> list[CategoryStats]:
    query = (
        select(
            Category.id,
            Category.slug,
            Category.color,
            func.count(Checkin.id).label("checkin_count"),
            func.avg(Checkin.mood).label("average_mood"),
        )
        .select_from(Category)
        .join(Checkin, Checkin.category_id == Category.id)
        .where(
            Checkin.user_id == user_id,
            Category.active.is_(True),
            Checkin.day >= start,
            Checkin.day <= end,
        )
        .group_by(Category.id, Category.slug, Category.color, Category.position)
        .order_by(Category.position)
    )
    if category_id is not None:
        query = query.where(Category.id == category_id)

    result = await db.execute(query)
    return [
        CategoryStats(
            category_id=row.id,
            slug=row.slug,
            color=row.color,
            count=int(row.checkin_count),
            average_mood=round(float(row.average_mood), 2) if row.average_mood is not None else None,
        )
        for row in result
    ]


@dataclass(frozen=True, slots=True)
class StreakAnalysis:
    streaks: list[StreakState]
    total_current_streak: int
    longest_streak_ever: int
    active_streaks: int


@dataclass(frozen=True, slots=True)
class Analytics:
    period_days: int
    start: date
    end: date
    total_checkins: int
    days_with_data: int
    average_completion_rate: float
    data_completeness: int
    daily: list[DailyCompletion]
    categories: list[CategoryStats]
    best_days: list[DailyCompletion]
    worst_days: list[DailyCompletion]
    streak_analysis: StreakAnalysis


async def analytics(
    db: AsyncSession,
    user_id: str,
    period_days: int,
    today: date,
    total_categories: int,
    category_id: int | None = None,
    grace_days: int = 1,
) -> Analytics:
    """Completion, mood and streak overview for the last ``period_days`` days."""
    start = today - timedelta(days=period_days - 1)
    if category_id is None:
        daily = await rollup_series(db, user_id, start, today, total_categories)
    else:
        daily = await completion_series(db, user_id, start, today, total_categories, category_id)
    categories = await category_stats(db, user_id, start, today, category_id)

    # dead runs read as 0, as everywhere else streaks are reported
    streaks = await StreakCalculator(db, grace_days).list_for_user(user_id, today=today)
    if category_id is not None:
        streaks = [s for s in streaks if s.category_id == category_id]

    with_data = [day for day in daily if day.categories_completed > 0]
    average = (
        round(sum(day.completion_rate for day in with_data) / len(with_data), 2) if with_data else 0.0
    )
    ranked = sorted(with_data, key=lambda day: (-day.completion_rate, day.day))

    return Analytics(
        period_days=period_days,
        start=start,
        end=today,
        total_checkins=sum(stat.count for stat in categories),
        days_with_data=len(with_data),
        average_completion_rate=average,
        data_completeness=round(len(with_data) / period_days * 100),
        daily=daily,
        categories=categories,
        best_days=ranked[:5],
        worst_days=list(reversed(ranked[-5:])),
        streak_analysis=StreakAnalysis(
            streaks=streaks,
            total_current_streak=sum(s.current_streak for s in streaks),
            longest_streak_ever=max((s.longest_streak for s in streaks), default=0),
            active_streaks=sum(1 for s in streaks if s.current_streak > 0),
        ),
    )
