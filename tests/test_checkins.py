"""Tests for the check-in store and the write path that maintains streaks."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.errors import InvalidArgument, NotFound
from app.models import Category, Checkin, DailyRollup, Streak
from app.services.checkins import CheckinService, CheckinStore, validate_mood
from app.services.streaks import StreakCalculator

USER = "user-1"


async def count_checkins(db, user_id=USER):
    result = await db.execute(select(func.count()).select_from(Checkin).where(Checkin.user_id == user_id))
    return result.scalar_one()


@pytest.fixture
def service(db):
    return CheckinService(db)


# ─────────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────────


class TestRecord:
    async def test_record_creates_checkin(self, db, categories, today):
        store = CheckinStore(db)
        checkin = await store.record(USER, categories[0].id, today, mood=4, notes="ran 5k")

        assert checkin.id is not None
        assert checkin.day == today
        assert checkin.mood == 4
        assert checkin.notes == "ran 5k"

    async def test_record_twice_keeps_one_row(self, db, categories, today):
        store = CheckinStore(db)
        first = await store.record(USER, categories[0].id, today, mood=3)
        second = await store.record(USER, categories[0].id, today, mood=3)

        assert first.id == second.id
        assert await count_checkins(db) == 1

    async def test_resubmission_updates_in_place(self, db, categories, today):
        store = CheckinStore(db)
        first = await store.record(USER, categories[0].id, today, mood=2)
        updated = await store.record(USER, categories[0].id, today, mood=5, notes="better")

        assert updated.id == first.id
        assert updated.mood == 5
        assert updated.notes == "better"
        assert await count_checkins(db) == 1

    async def test_record_from_separate_sessions_keeps_one_row(self, session_maker, categories, today):
        ids = []
        for mood in (1, 4):
            async with session_maker() as session:
                checkin = await CheckinStore(session).record(USER, categories[1].id, today, mood=mood)
                ids.append(checkin.id)
                await session.commit()

        async with session_maker() as session:
            assert await count_checkins(session) == 1
        assert ids[0] == ids[1]

    @pytest.mark.parametrize("mood", [0, 6, -1, True])
    async def test_mood_out_of_range(self, db, categories, today, mood):
        with pytest.raises(InvalidArgument):
            await CheckinStore(db).record(USER, categories[0].id, today, mood=mood)
        assert await count_checkins(db) == 0

    async def test_unknown_category(self, db, today):
        with pytest.raises(InvalidArgument) as exc_info:
            await CheckinStore(db).record(USER, 999, today)
        assert exc_info.value.code == "INVALID_ARGUMENT"

    async def test_inactive_category(self, db, categories, today):
        category = await db.get(Category, categories[0].id)
        category.active = False
        await db.flush()

        with pytest.raises(InvalidArgument):
            await CheckinStore(db).record(USER, category.id, today)


class TestValidateMood:
    def test_none_is_allowed(self):
        validate_mood(None)

    @pytest.mark.parametrize("mood", [1, 3, 5])
    def test_valid_moods(self, mood):
        validate_mood(mood)


class TestUpdateAndList:
    async def test_update_existing(self, db, categories, today):
        store = CheckinStore(db)
        await store.record(USER, categories[0].id, today, mood=2, notes="meh")

        checkin = await store.update(USER, categories[0].id, today, mood=4)

        assert checkin.mood == 4
        assert checkin.notes == "meh"

    async def test_update_missing_raises_not_found(self, db, categories, today):
        with pytest.raises(NotFound):
            await CheckinStore(db).update(USER, categories[0].id, today, mood=4)

    async def test_list_filters_and_orders(self, db, categories, today):
        store = CheckinStore(db)
        for offset in range(4):
            await store.record(USER, categories[0].id, today - timedelta(days=offset))
        await store.record(USER, categories[1].id, today)
        await store.record("someone-else", categories[0].id, today)

        checkins = await store.list_for_user(USER, start=today - timedelta(days=2), category_id=categories[0].id)

        assert [c.day for c in checkins] == [today, today - timedelta(days=1), today - timedelta(days=2)]


# ─────────────────────────────────────────────────────────────────
# Write path
# ─────────────────────────────────────────────────────────────────


class TestCheckinService:
    async def test_day_defaults_to_today(self, service, categories, today):
        result = await service.record(USER, categories[0].id, today=today)

        assert result.checkin.day == today
        assert result.streak.current_streak == 1
        assert result.streak.longest_streak == 1

    async def test_future_day_rejected(self, db, service, categories, today):
        with pytest.raises(InvalidArgument):
            await service.record(USER, categories[0].id, today=today, day=today + timedelta(days=1))
        assert await count_checkins(db) == 0

    async def test_consecutive_days_build_streak(self, service, categories, today):
        category_id = categories[0].id
        for offset in (2, 1, 0):
            day = today - timedelta(days=offset)
            result = await service.record(USER, category_id, today=day)

        assert result.streak.current_streak == 3
        assert result.streak.longest_streak == 3
        assert result.streak.last_checkin == today

    async def test_gap_resets_current_streak(self, service, categories, today):
        category_id = categories[0].id
        await service.record(USER, category_id, today=today - timedelta(days=2))
        result = await service.record(USER, category_id, today=today)

        assert result.streak.current_streak == 1
        assert result.streak.longest_streak == 1

    async def test_backfill_fills_gap(self, service, categories, today):
        category_id = categories[0].id
        await service.record(USER, category_id, today=today, day=today - timedelta(days=2))
        await service.record(USER, category_id, today=today)

        result = await service.record(USER, category_id, today=today, day=today - timedelta(days=1))

        assert result.streak.current_streak == 3
        assert result.streak.longest_streak == 3
        assert result.streak.last_checkin == today

    async def test_incremental_matches_full_recompute(self, db, service, categories, today):
        category_id = categories[2].id
        for offset in (6, 5, 3, 2, 1, 0):
            await service.record(USER, category_id, today=today, day=today - timedelta(days=offset))
        incremental = await StreakCalculator(db).get(USER, category_id)

        full = await StreakCalculator(db).recompute(USER, category_id, today)

        assert incremental == full

    async def test_record_refreshes_daily_rollup(self, db, service, categories, today):
        await service.record(USER, categories[0].id, today=today, mood=4)
        await service.record(USER, categories[1].id, today=today, mood=2)

        rollup = await db.get(DailyRollup, (USER, today))
        assert rollup.categories_completed == 2
        assert rollup.completion_rate == pytest.approx(2 / 6, abs=1e-4)
        assert rollup.total_mood == 6

    async def test_streak_failure_keeps_checkin(self, db, service, categories, today):
        service.streaks.on_checkin_recorded = AsyncMock(
            side_effect=OperationalError("UPDATE streaks", {}, Exception("database is locked"))
        )

        result = await service.record(USER, categories[0].id, today=today)

        assert result.streak is None
        assert result.checkin.id is not None
        assert await count_checkins(db) == 1

    async def test_stale_streak_heals_after_gap(self, db, service, categories, today):
        category_id = categories[0].id
        await service.record(USER, category_id, today=today - timedelta(days=3))
        # written without streak maintenance, as after a failed savepoint
        await CheckinStore(db).record(USER, category_id, today - timedelta(days=1))

        result = await service.record(USER, category_id, today=today)

        assert result.streak.current_streak == 2
        assert result.streak.longest_streak == 2
        assert result.streak == await StreakCalculator(db).recompute(USER, category_id, today)


class TestRemove:
    async def test_remove_recomputes_streak(self, db, service, categories, today):
        category_id = categories[0].id
        for offset in (2, 1, 0):
            await service.record(USER, category_id, today=today, day=today - timedelta(days=offset))

        result = await service.remove(USER, category_id, today - timedelta(days=1), today=today)

        assert result.removed is True
        assert result.streak.current_streak == 1
        # the record of 3 survives the removal
        assert result.streak.longest_streak == 3

    async def test_remove_missing_is_noop(self, db, service, categories, today):
        result = await service.remove(USER, categories[0].id, today, today=today)

        assert result.removed is False
        assert result.streak is None
        assert (await db.execute(select(Streak))).first() is None

    async def test_remove_last_checkin(self, db, service, categories, today):
        category_id = categories[0].id
        await service.record(USER, category_id, today=today)

        result = await service.remove(USER, category_id, today, today=today)

        assert result.streak.current_streak == 0
        assert result.streak.longest_streak == 1
        assert result.streak.last_checkin is None
        assert await db.get(DailyRollup, (USER, today)) is None

    async def test_longest_never_decreases(self, db, service, categories, today):
        category_id = categories[0].id
        calculator = StreakCalculator(db)
        for offset in (4, 3, 2, 1, 0):
            await service.record(USER, category_id, today=today, day=today - timedelta(days=offset))

        longest = []
        for offset in (2, 0, 4):
            await service.remove(USER, category_id, today - timedelta(days=offset), today=today)
            longest.append((await calculator.recompute(USER, category_id, today)).longest_streak)

        assert longest == [5, 5, 5]
        assert longest == sorted(longest)


# ─────────────────────────────────────────────────────────────────
# Scenario
# ─────────────────────────────────────────────────────────────────


async def test_three_day_scenario(db, service, categories, today):
    """Mon: 1,2,3  Tue: 1,2  Wed: 1  -> evaluated Thursday."""
    monday = today - timedelta(days=3)
    cat1, cat2, cat3 = (c.id for c in categories[:3])
    plan = {
        monday: [cat1, cat2, cat3],
        monday + timedelta(days=1): [cat1, cat2],
        monday + timedelta(days=2): [cat1],
    }
    for day, category_ids in plan.items():
        for category_id in category_ids:
            await service.record(USER, category_id, today=day)

    calculator = StreakCalculator(db)
    streaks = {c: await calculator.get(USER, c, today=today) for c in (cat1, cat2, cat3)}
    assert streaks[cat1].current_streak == 3
    assert streaks[cat1].longest_streak == 3
    assert streaks[cat2].current_streak == 0
    assert streaks[cat2].longest_streak == 2
    assert streaks[cat3].current_streak == 0

    recomputed = {c: await calculator.recompute(USER, c, today) for c in (cat1, cat2, cat3)}
    assert [recomputed[c].current_streak for c in (cat1, cat2, cat3)] == [3, 0, 0]
