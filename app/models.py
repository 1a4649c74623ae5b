from datetime import datetime, date, timezone
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


# Identity provider subject ids are stored as-is
USER_ID_LENGTH = 64


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[dict] = mapped_column(JSON, nullable=False)  # {"en": "Physical", "es": "Física"}
    description: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    color: Mapped[str] = mapped_column(String(16), nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_categories_position", "position", "id"),
    )

    def __repr__(self) -> str:
        return f"<Category {self.slug} position={self.position}>"


class Checkin(Base):
    __tablename__ = "checkins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[date] = mapped_column(Date, nullable=False)
    mood: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-5
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # One check-in per user, category and day
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "day", name="uq_checkin_user_category_day"),
        CheckConstraint("mood IS NULL OR (mood >= 1 AND mood <= 5)", name="ck_checkin_mood_range"),
        Index("ix_checkins_user_day", "user_id", "day"),
    )

    def __repr__(self) -> str:
        return f"<Checkin {self.user_id} category={self.category_id} day={self.day}>"


class Streak(Base):
    __tablename__ = "streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_checkin: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_streak_user_category"),
        CheckConstraint("current_streak >= 0", name="ck_streak_current_positive"),
        CheckConstraint("longest_streak >= current_streak", name="ck_streak_longest_covers_current"),
    )

    def __repr__(self) -> str:
        return f"<Streak {self.user_id} category={self.category_id} {self.current_streak}/{self.longest_streak}>"


class DailyRollup(Base):
    __tablename__ = "daily_rollups"

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    categories_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_mood: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mood_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # check-ins with a mood
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<DailyRollup {self.user_id} {self.day} {self.categories_completed}>"
