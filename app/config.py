from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "Axis Tracker"
    debug: bool = False
    log_level: str = "INFO"

    # Identity provider (tokens are issued elsewhere, we only verify them)
    identity_secret: str = "dev-secret-key-change-in-production"
    identity_algorithm: str = "HS256"

    # Database - supports SQLite (dev) or PostgreSQL (prod)
    database_url: str = "sqlite+aiosqlite:///./tracker.db"

    # Reference day for callers that don't send X-Timezone
    default_timezone: str = "UTC"

    # Category registry
    expected_category_count: int = 6
    strict_category_set: bool = False
    seed_categories: bool = True

    # Streaks and rollups
    streak_grace_days: int = 1  # 1 = today or yesterday keeps a streak alive
    weekly_window_days: int = 7
    analytics_default_period: int = 30
    analytics_max_period: int = 365

    @property
    def async_database_url(self) -> str:
        """Convert DATABASE_URL to async format for SQLAlchemy."""
        url = self.database_url
        # Handle Railway/Fly PostgreSQL URLs
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
