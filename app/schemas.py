from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator


# ============ Category Schemas ============

class CategoryResponse(BaseModel):
    id: int
    slug: str
    name: dict[str, str]
    description: dict[str, str] | None = None
    color: str
    icon: str
    position: int

    class Config:
        from_attributes = True


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]
    total: int
    expected: int
    anomalies: list[str] = []


# ============ Checkin Schemas ============

class CheckinCreate(BaseModel):
    category_id: int
    day: date | None = Field(None, description="Defaults to today in the caller's timezone")
    mood: int | None = Field(None, description="Mood from 1 (low) to 5 (great)")
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        return v.strip() or None if v else v


class CheckinUpdate(BaseModel):
    mood: int | None = None
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        return v.strip() or None if v else v


class CheckinResponse(BaseModel):
    id: int
    category_id: int
    day: date
    mood: int | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CheckinListResponse(BaseModel):
    checkins: list[CheckinResponse]
    total: int


# ============ Streak Schemas ============

class StreakResponse(BaseModel):
    category_id: int
    current_streak: int
    longest_streak: int
    last_checkin: date | None

    class Config:
        from_attributes = True


class StreakListResponse(BaseModel):
    streaks: list[StreakResponse]


# ============ Dashboard Schemas ============

class DailyCompletionResponse(BaseModel):
    day: date
    categories_completed: int
    completion_rate: float

    class Config:
        from_attributes = True


class DashboardCategoryResponse(BaseModel):
    id: int
    slug: str
    name: dict[str, str]
    color: str
    icon: str
    position: int
    completed_today: bool
    mood: int | None
    notes: str | None
    current_streak: int
    longest_streak: int
    last_checkin: date | None

    class Config:
        from_attributes = True


class DashboardStatsResponse(BaseModel):
    today_completed: int
    today_progress: float
    best_current_streak: int
    best_longest_streak: int
    perfect_days: int | None

    class Config:
        from_attributes = True


class DashboardResponse(BaseModel):
    user_id: str
    as_of: date
    categories: list[DashboardCategoryResponse]
    weekly: list[DailyCompletionResponse] | None
    stats: DashboardStatsResponse
    anomalies: list[str]

    class Config:
        from_attributes = True


# ============ Analytics Schemas ============

class WeeklyStatsResponse(BaseModel):
    start: date
    end: date
    total_checkins: int
    perfect_days: int
    completion_rate: float

    class Config:
        from_attributes = True


class CategoryStatsResponse(BaseModel):
    category_id: int
    slug: str
    color: str
    count: int
    average_mood: float | None

    class Config:
        from_attributes = True


class MoodPointResponse(BaseModel):
    day: date
    average_mood: float | None


class StreakAnalysisResponse(BaseModel):
    streaks: list[StreakResponse]
    total_current_streak: int
    longest_streak_ever: int
    active_streaks: int

    class Config:
        from_attributes = True


class AnalyticsOverviewResponse(BaseModel):
    period_days: int
    start: date
    end: date
    total_checkins: int
    days_with_data: int
    average_completion_rate: float
    data_completeness: int


class AnalyticsResponse(BaseModel):
    overview: AnalyticsOverviewResponse
    daily: list[DailyCompletionResponse]
    categories: list[CategoryStatsResponse]
    best_days: list[DailyCompletionResponse]
    worst_days: list[DailyCompletionResponse]
    mood_trend: list[MoodPointResponse]
    streak_analysis: StreakAnalysisResponse
