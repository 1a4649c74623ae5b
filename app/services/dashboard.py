"""
Dashboard aggregation.

Everything the dashboard shows for one user comes from a single statement:

    categories (active, by position)
      LEFT JOIN streaks  ON user + category
      LEFT JOIN checkins ON user + category + day in the trailing window

which yields at most ``categories x window`` rows. Today's state, streaks and
the weekly rollup are then folded together in Python. Nothing is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Category, Checkin, Streak
from app.services.categories import find_anomalies
from app.services.rollups import DailyCompletion, build_series, completion_rate
from app.services.streaks import is_alive

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DashboardCategory:
    id: int
    slug: str
    name: dict
    color: str
    icon: str
    position: int
    completed_today: bool = False
    mood: int | None = None
    notes: str | None = None
    current_streak: int = 0
    longest_streak: int = 0
    last_checkin: date | None = None


@dataclass(frozen=True, slots=True)
class DashboardStats:
    today_completed: int
    today_progress: float
    best_current_streak: int
    best_longest_streak: int
    perfect_days: int | None


@dataclass(slots=True)
class DashboardSnapshot:
    user_id: str
    as_of: date
    categories: list[DashboardCategory]
    weekly: list[DailyCompletion] | None
    stats: DashboardStats
    anomalies: list[str] = field(default_factory=list)


def summarize_week(
    checkin_days: dict[int, set[date]],
    start: date,
    end: date,
    total_categories: int,
) -> list[DailyCompletion]:
    """Distinct categories completed per day, from category -> days."""
    counts: dict[date, int] = {}
    for days in checkin_days.values():
        for day in days:
            if start <= day <= end:
                counts[day] = counts.get(day, 0) + 1
    return build_series(counts, start, end, total_categories)


class DashboardAggregator:
    def __init__(
        self,
        db: AsyncSession,
        expected_categories: int = 6,
        window_days: int = 7,
        grace_days: int = 1,
    ):
        self.db = db
        self.expected_categories = expected_categories
        self.window_days = window_days
        self.grace_days = grace_days

    def _statement(self, user_id: str, start: date, as_of: date):
        return (
            select(
                Category,
                Streak.current_streak,
                Streak.longest_streak,
                Streak.last_checkin,
                Checkin.day,
                Checkin.mood,
                Checkin.notes,
            )
            .outerjoin(
                Streak,
                and_(Streak.category_id == Category.id, Streak.user_id == user_id),
            )
            .outerjoin(
                Checkin,
                and_(
                    Checkin.category_id == Category.id,
                    Checkin.user_id == user_id,
                    Checkin.day >= start,
                    Checkin.day <= as_of,
                ),
            )
            .where(Category.active.is_(True))
            .order_by(Category.position, Category.id, Checkin.day)
        )

    async def get(self, user_id: str, as_of: date) -> DashboardSnapshot:
        start = as_of - timedelta(days=self.window_days - 1)
        result = await self.db.execute(self._statement(user_id, start, as_of))

        categories: dict[int, DashboardCategory] = {}
        checkin_days: dict[int, set[date]] = {}
        for row in result:
            category = row.Category
            entry = categories.get(category.id)
            if entry is None:
                entry = DashboardCategory(
                    id=category.id,
                    slug=category.slug,
                    name=category.name,
                    color=category.color,
                    icon=category.icon,
                    position=category.position,
                )
                if row.longest_streak is not None:
                    entry.longest_streak = row.longest_streak or 0
                    entry.last_checkin = row.last_checkin
                    # Stored current streak may predate as_of; a dead run reads as 0
                    entry.current_streak = (
                        row.current_streak or 0
                        if is_alive(row.last_checkin, as_of, self.grace_days)
                        else 0
                    )
                categories[category.id] = entry
                checkin_days[category.id] = set()

            if row.day is not None:
                checkin_days[category.id].add(row.day)
                if row.day == as_of:
                    entry.completed_today = True
                    entry.mood = row.mood
                    entry.notes = row.notes

        ordered = list(categories.values())
        anomalies = find_anomalies(ordered, self.expected_categories)
        total = len(ordered)

        try:
            weekly = summarize_week(checkin_days, start, as_of, total)
        except Exception:
            logger.exception("Weekly rollup failed for user=%s as_of=%s, serving dashboard without it", user_id, as_of)
            weekly = None

        today_completed = sum(1 for c in ordered if c.completed_today)
        stats = DashboardStats(
            today_completed=today_completed,
            today_progress=completion_rate(today_completed, total),
            best_current_streak=max((c.current_streak for c in ordered), default=0),
            best_longest_streak=max((c.longest_streak for c in ordered), default=0),
            perfect_days=(
                sum(1 for d in weekly if total and d.categories_completed >= total)
                if weekly is not None
                else None
            ),
        )

        return DashboardSnapshot(
            user_id=user_id,
            as_of=as_of,
            categories=ordered,
            weekly=weekly,
            stats=stats,
            anomalies=anomalies,
        )
