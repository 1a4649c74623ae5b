import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.database import async_session_maker, init_db
from app.errors import register_exception_handlers
from app.logging_config import setup_logging
from app.routers import analytics, categories, checkins, dashboard, streaks
from app.services.categories import seed_default_categories, verify_category_set

settings = get_settings()
setup_logging(settings.log_level, settings.debug)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and category registry on startup."""
    await init_db()
    async with async_session_maker() as session:
        if settings.seed_categories:
            await seed_default_categories(session)
            await session.commit()
        await verify_category_set(
            session,
            expected=settings.expected_category_count,
            strict=settings.strict_category_set,
        )
    logger.info("Database initialized")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Daily check-ins across life categories, with streaks and a weekly dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include routers
app.include_router(categories.router)
app.include_router(checkins.router)
app.include_router(streaks.router)
app.include_router(dashboard.router)
app.include_router(analytics.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
