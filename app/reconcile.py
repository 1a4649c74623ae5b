"""
Streak and rollup reconciliation job.

Recomputes every materialized streak from check-in history and rebuilds the
daily rollups. Safe to run next to live traffic: each (user, category) pair is
handled in its own SAVEPOINT and a failure is counted, not fatal.

Usage:
    Run via CRON:
        15 3 * * * cd /path/to/project && python -m app.reconcile

    Or for a single user / reference day:
        python -m app.reconcile --user 0b6c... --today 2025-01-31
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select, union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import TimeProvider
from app.config import get_settings
from app.database import async_session_maker
from app.logging_config import setup_logging
from app.models import Checkin, Streak
from app.services.categories import count_active_categories
from app.services.rollups import rebuild_daily_rollups
from app.services.streaks import StreakCalculator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileReport:
    streaks_recomputed: int = 0
    rollup_days: int = 0
    failures: list[str] = field(default_factory=list)


async def tracked_pairs(db: AsyncSession, user_id: str | None = None) -> list[tuple[str, int]]:
    """Every (user, category) that has a check-in or a streak row."""
    checkins = select(Checkin.user_id, Checkin.category_id)
    streaks = select(Streak.user_id, Streak.category_id)
    if user_id is not None:
        checkins = checkins.where(Checkin.user_id == user_id)
        streaks = streaks.where(Streak.user_id == user_id)

    pairs = union(checkins, streaks).subquery()
    result = await db.execute(select(pairs.c.user_id, pairs.c.category_id).order_by(pairs.c.user_id, pairs.c.category_id))
    return [(row.user_id, row.category_id) for row in result]


async def reconcile_all(
    db: AsyncSession,
    today: date,
    grace_days: int = 1,
    user_id: str | None = None,
) -> ReconcileReport:
    report = ReconcileReport()
    calculator = StreakCalculator(db, grace_days)
    pairs = await tracked_pairs(db, user_id)
    logger.info("Reconciling %d streaks as of %s", len(pairs), today)

    for pair_user, category_id in pairs:
        try:
            async with db.begin_nested():
                await calculator.recompute(pair_user, category_id, today)
            report.streaks_recomputed += 1
        except SQLAlchemyError as e:
            error_msg = f"streak user={pair_user} category={category_id}: {e}"
            logger.error("Reconciliation failed for %s", error_msg)
            report.failures.append(error_msg)

    total = await count_active_categories(db)
    for pair_user in sorted({u for u, _ in pairs}):
        try:
            async with db.begin_nested():
                report.rollup_days += await rebuild_daily_rollups(db, pair_user, total)
        except SQLAlchemyError as e:
            error_msg = f"rollups user={pair_user}: {e}"
            logger.error("Reconciliation failed for %s", error_msg)
            report.failures.append(error_msg)

    logger.info(
        "Reconciliation done: %d streaks, %d rollup days, %d failures",
        report.streaks_recomputed, report.rollup_days, len(report.failures),
    )
    return report


async def run(today: date | None = None, user_id: str | None = None) -> ReconcileReport:
    settings = get_settings()
    today = today or TimeProvider(settings.default_timezone).today()

    async with async_session_maker() as session:
        report = await reconcile_all(session, today, settings.streak_grace_days, user_id)
        await session.commit()
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute streaks and daily rollups from check-ins")
    parser.add_argument("--today", type=date.fromisoformat, help="Reference day (YYYY-MM-DD)")
    parser.add_argument("--user", help="Only reconcile this user id")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.debug)

    report = asyncio.run(run(args.today, args.user))
    if report.failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
