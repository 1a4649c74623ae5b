"""
Streak calculation.

The walk over check-in days is a pure function (``compute_streak``) so it can be
tested without a database. ``StreakCalculator`` loads the days, runs the walk
and materializes the result in the ``streaks`` table.

``longest_streak`` never goes down once persisted: removing old check-ins
shortens the current run but does not erase a record the user already reached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import greatest, upsert
from app.models import Checkin, Streak, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StreakSummary:
    current: int
    longest: int
    last_checkin: date | None


EMPTY_STREAK = StreakSummary(current=0, longest=0, last_checkin=None)


@dataclass(frozen=True, slots=True)
class StreakState:
    user_id: str
    category_id: int
    current_streak: int
    longest_streak: int
    last_checkin: date | None


def is_alive(last_checkin: date | None, today: date, grace_days: int = 1) -> bool:
    """A run is alive while its last day is within ``grace_days`` of today."""
    if last_checkin is None:
        return False
    return last_checkin >= today - timedelta(days=grace_days)


def compute_streak(days: Iterable[date], today: date, grace_days: int = 1) -> StreakSummary:
    """
    Current and longest consecutive-day runs in ``days``.

    Days may come in any order and may repeat. The current streak is the run
    that ends on the most recent day, and counts only while that day is
    today or within the grace window; older runs still feed ``longest``.
    """
    ordered = sorted(set(days), reverse=True)
    if not ordered:
        return EMPTY_STREAK

    run_length = 1
    longest_seen = 0
    latest_run: int | None = None

    for previous, current in zip(ordered, ordered[1:]):
        if (previous - current).days == 1:
            run_length += 1
            continue
        # gap closes the run
        if latest_run is None:
            latest_run = run_length
        longest_seen = max(longest_seen, run_length)
        run_length = 1

    if latest_run is None:
        latest_run = run_length
    longest = max(longest_seen, run_length)

    last_checkin = ordered[0]
    current = latest_run if is_alive(last_checkin, today, grace_days) else 0
    return StreakSummary(current=current, longest=longest, last_checkin=last_checkin)


def extend_streak(
    previous: StreakSummary | None,
    new_day: date,
    today: date,
    grace_days: int = 1,
) -> StreakSummary | None:
    """
    Fold one newly recorded day into a persisted streak.

    Returns None when the result can't be derived from ``previous`` alone
    (no prior row, a backfilled day, a day after a gap, or a run that was
    already broken) and a full recompute is required.
    """
    if previous is None or previous.last_checkin is None:
        return None

    last = previous.last_checkin
    if new_day < last:
        # backfill may have closed a gap
        return None

    if new_day == last:
        if previous.current == 0:
            return None
        current = previous.current if is_alive(last, today, grace_days) else 0
        return StreakSummary(current=current, longest=previous.longest, last_checkin=last)

    if new_day != last + timedelta(days=1) or previous.current == 0:
        # stored state may be stale after a gap, let the full walk decide
        return None
    run = previous.current + 1

    current = run if is_alive(new_day, today, grace_days) else 0
    return StreakSummary(
        current=current,
        longest=max(previous.longest, run),
        last_checkin=new_day,
    )


class StreakCalculator:
    """Maintains the materialized ``streaks`` rows for one session."""

    def __init__(self, db: AsyncSession, grace_days: int = 1):
        self.db = db
        self.grace_days = grace_days

    async def checkin_days(self, user_id: str, category_id: int) -> list[date]:
        result = await self.db.execute(
            select(Checkin.day)
            .where(Checkin.user_id == user_id, Checkin.category_id == category_id)
            .order_by(Checkin.day.desc())
        )
        return list(result.scalars().all())

    def _as_of(
        self,
        user_id: str,
        category_id: int,
        current: int,
        longest: int,
        last: date | None,
        today: date | None,
    ) -> StreakState:
        # A stored run whose last day fell out of the grace window reads as broken
        if today is not None and not is_alive(last, today, self.grace_days):
            current = 0
        return StreakState(user_id, category_id, current, longest, last)

    async def get(self, user_id: str, category_id: int, today: date | None = None) -> StreakState:
        """
        Persisted streak, or zeros when the user never checked in. Read-only.

        With ``today`` the current streak is reported as 0 once the last
        check-in is outside the grace window, even if the row is stale.
        """
        result = await self.db.execute(
            select(Streak.current_streak, Streak.longest_streak, Streak.last_checkin).where(
                Streak.user_id == user_id, Streak.category_id == category_id
            )
        )
        row = result.one_or_none()
        if row is None:
            return StreakState(user_id, category_id, 0, 0, None)
        return self._as_of(user_id, category_id, row.current_streak, row.longest_streak, row.last_checkin, today)

    async def list_for_user(self, user_id: str, today: date | None = None) -> list[StreakState]:
        result = await self.db.execute(
            select(Streak).where(Streak.user_id == user_id).order_by(Streak.category_id)
        )
        return [
            self._as_of(s.user_id, s.category_id, s.current_streak, s.longest_streak, s.last_checkin, today)
            for s in result.scalars().all()
        ]

    async def recompute(self, user_id: str, category_id: int, today: date) -> StreakState:
        """Full recompute from check-in history. Idempotent."""
        days = await self.checkin_days(user_id, category_id)
        summary = compute_streak(days, today, self.grace_days)
        state = await self._save(user_id, category_id, summary)
        logger.debug(
            "Recomputed streak user=%s category=%s from %d days: %s/%s",
            user_id, category_id, len(days), state.current_streak, state.longest_streak,
        )
        return state

    async def on_checkin_recorded(self, user_id: str, category_id: int, day: date, today: date) -> StreakState:
        """Incremental update after a check-in, falling back to a full recompute."""
        previous = await self._load_summary(user_id, category_id)
        extended = extend_streak(previous, day, today, self.grace_days)
        if extended is None:
            return await self.recompute(user_id, category_id, today)

        # Only apply if nobody else moved the row since we read it
        result = await self.db.execute(
            update(Streak)
            .where(
                Streak.user_id == user_id,
                Streak.category_id == category_id,
                Streak.last_checkin == previous.last_checkin,
                Streak.current_streak == previous.current,
            )
            .values(
                current_streak=extended.current,
                longest_streak=greatest(self.db, Streak.longest_streak, extended.longest),
                last_checkin=extended.last_checkin,
                updated_at=utcnow(),
            )
            .returning(Streak.current_streak, Streak.longest_streak, Streak.last_checkin)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            logger.info("Streak row for user=%s category=%s changed concurrently, recomputing", user_id, category_id)
            return await self.recompute(user_id, category_id, today)
        return StreakState(user_id, category_id, row.current_streak, row.longest_streak, row.last_checkin)

    async def _load_summary(self, user_id: str, category_id: int) -> StreakSummary | None:
        result = await self.db.execute(
            select(Streak.current_streak, Streak.longest_streak, Streak.last_checkin).where(
                Streak.user_id == user_id, Streak.category_id == category_id
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return StreakSummary(row.current_streak, row.longest_streak, row.last_checkin)

    async def _save(self, user_id: str, category_id: int, summary: StreakSummary) -> StreakState:
        stmt = upsert(self.db, Streak).values(
            user_id=user_id,
            category_id=category_id,
            current_streak=summary.current,
            longest_streak=summary.longest,
            last_checkin=summary.last_checkin,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "category_id"],
            set_={
                "current_streak": stmt.excluded.current_streak,
                "longest_streak": greatest(self.db, stmt.excluded.longest_streak, Streak.longest_streak),
                "last_checkin": stmt.excluded.last_checkin,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Streak.current_streak, Streak.longest_streak, Streak.last_checkin)

        row = (await self.db.execute(stmt)).one()
        return StreakState(user_id, category_id, row.current_streak, row.longest_streak, row.last_checkin)
