"""Shared test fixtures: a fresh SQLite database per test, seeded categories, an API client."""

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth import create_access_token
from app.clock import FixedClock
from app.database import Base, build_engine, get_db
from app.dependencies import get_clock
from app.main import app as fastapi_app
from app.services.categories import list_categories, seed_default_categories

# A Thursday, so TODAY - 3 .. TODAY - 1 is Monday .. Wednesday
TODAY = date(2025, 1, 30)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_maker(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        await seed_default_categories(session)
        await session.commit()
    return maker


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def categories(db):
    categories = await list_categories(db)
    # end the read transaction so other sessions can write freely
    await db.commit()
    return categories


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_clock] = lambda: FixedClock(TODAY)

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}
