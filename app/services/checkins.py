"""
Check-in store and the write path that keeps streaks and rollups in step.

Every write of a check-in is a single ``INSERT ... ON CONFLICT DO UPDATE`` on
``(user_id, category_id, day)``. Two concurrent requests for the same day both
succeed and leave exactly one row behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import upsert
from app.errors import InvalidArgument, NotFound
from app.models import Checkin, utcnow
from app.services.categories import count_active_categories, get_active_category
from app.services.rollups import refresh_daily_rollup
from app.services.streaks import StreakCalculator, StreakState

logger = logging.getLogger(__name__)

MOOD_MIN = 1
MOOD_MAX = 5


def validate_mood(mood: int | None) -> None:
    if mood is None:
        return
    if isinstance(mood, bool) or not isinstance(mood, int) or not MOOD_MIN <= mood <= MOOD_MAX:
        raise InvalidArgument(
            f"Mood must be between {MOOD_MIN} and {MOOD_MAX}",
            details={"mood": mood},
        )


class CheckinStore:
    """Persistence for check-ins. Knows nothing about streaks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        user_id: str,
        category_id: int,
        day: date,
        mood: int | None = None,
        notes: str | None = None,
    ) -> Checkin:
        """Insert the check-in, or update mood/notes if the day is already checked in."""
        validate_mood(mood)
        await get_active_category(self.db, category_id)

        now = utcnow()
        stmt = upsert(self.db, Checkin).values(
            user_id=user_id,
            category_id=category_id,
            day=day,
            mood=mood,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "category_id", "day"],
            set_={
                "mood": stmt.excluded.mood,
                "notes": stmt.excluded.notes,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Checkin)

        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def get(self, user_id: str, category_id: int, day: date) -> Checkin | None:
        result = await self.db.execute(
            select(Checkin).where(
                and_(Checkin.user_id == user_id, Checkin.category_id == category_id, Checkin.day == day)
            )
        )
        return result.scalar_one_or_none()

    async def update(
        self,
        user_id: str,
        category_id: int,
        day: date,
        mood: int | None = None,
        notes: str | None = None,
    ) -> Checkin:
        """Change mood and/or notes of an existing check-in."""
        validate_mood(mood)
        checkin = await self.get(user_id, category_id, day)
        if checkin is None:
            raise NotFound(
                f"No check-in for category {category_id} on {day}",
                details={"category_id": category_id, "day": day.isoformat()},
            )

        if mood is not None:
            checkin.mood = mood
        if notes is not None:
            checkin.notes = notes

        await self.db.flush()
        await self.db.refresh(checkin)
        return checkin

    async def remove(self, user_id: str, category_id: int, day: date) -> bool:
        """Delete the check-in. Returns False when there was nothing to delete."""
        result = await self.db.execute(
            delete(Checkin)
            .where(Checkin.user_id == user_id, Checkin.category_id == category_id, Checkin.day == day)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def list_for_user(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        category_id: int | None = None,
    ) -> list[Checkin]:
        query = select(Checkin).where(Checkin.user_id == user_id)

        if start:
            query = query.where(Checkin.day >= start)
        if end:
            query = query.where(Checkin.day <= end)
        if category_id is not None:
            query = query.where(Checkin.category_id == category_id)

        query = query.order_by(Checkin.day.desc(), Checkin.category_id)

        result = await self.db.execute(query)
        return list(result.scalars().all())


@dataclass(frozen=True, slots=True)
class RecordResult:
    checkin: Checkin
    streak: StreakState | None  # None when streak maintenance failed


@dataclass(frozen=True, slots=True)
class RemoveResult:
    removed: bool
    streak: StreakState | None


class CheckinService:
    """
    Write path: store the check-in, then explicitly bring the streak and the
    daily rollup up to date.

    Streak/rollup maintenance runs in a SAVEPOINT. If it fails the check-in
    still stands and the streak stays stale until the next write or the
    reconciliation job.
    """

    def __init__(self, db: AsyncSession, grace_days: int = 1):
        self.db = db
        self.store = CheckinStore(db)
        self.streaks = StreakCalculator(db, grace_days)

    async def record(
        self,
        user_id: str,
        category_id: int,
        today: date,
        day: date | None = None,
        mood: int | None = None,
        notes: str | None = None,
    ) -> RecordResult:
        day = day or today
        if day > today:
            raise InvalidArgument(
                "Cannot check in for a future day",
                details={"day": day.isoformat(), "today": today.isoformat()},
            )

        checkin = await self.store.record(user_id, category_id, day, mood=mood, notes=notes)
        logger.debug("Recorded check-in user=%s category=%s day=%s", user_id, category_id, day)

        streak = await self._maintain(user_id, category_id, day, today, incremental=True)
        return RecordResult(checkin=checkin, streak=streak)

    async def update(
        self,
        user_id: str,
        category_id: int,
        day: date,
        mood: int | None = None,
        notes: str | None = None,
    ) -> Checkin:
        """Edit mood/notes. Streaks are unaffected, the day's mood total is not."""
        checkin = await self.store.update(user_id, category_id, day, mood=mood, notes=notes)
        try:
            async with self.db.begin_nested():
                total = await count_active_categories(self.db)
                await refresh_daily_rollup(self.db, user_id, day, total)
        except SQLAlchemyError:
            logger.exception(
                "Rollup refresh failed for user=%s day=%s, left for reconciliation", user_id, day
            )
        return checkin

    async def remove(self, user_id: str, category_id: int, day: date, today: date) -> RemoveResult:
        removed = await self.store.remove(user_id, category_id, day)
        if not removed:
            # Nothing changed, nothing to recompute
            return RemoveResult(removed=False, streak=None)

        logger.debug("Removed check-in user=%s category=%s day=%s", user_id, category_id, day)
        streak = await self._maintain(user_id, category_id, day, today, incremental=False)
        return RemoveResult(removed=True, streak=streak)

    async def _maintain(
        self,
        user_id: str,
        category_id: int,
        day: date,
        today: date,
        incremental: bool,
    ) -> StreakState | None:
        try:
            async with self.db.begin_nested():
                if incremental:
                    streak = await self.streaks.on_checkin_recorded(user_id, category_id, day, today)
                else:
                    streak = await self.streaks.recompute(user_id, category_id, today)
                total = await count_active_categories(self.db)
                await refresh_daily_rollup(self.db, user_id, day, total)
        except SQLAlchemyError:
            logger.exception(
                "Streak maintenance failed for user=%s category=%s, left for reconciliation",
                user_id, category_id,
            )
            return None
        return streak
