from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date


class Priority(str, Enum):
    """Habit priority tiers; the tier fixes the reward at creation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MoodTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    NEUTRAL = "neutral"


# ============================================
# Habits
# ============================================

class HabitCreate(BaseModel):
    """Request body for POST /habits."""
    name: str = Field(..., max_length=100, description="Habit name")
    description: str = Field("", max_length=1000)
    priority: Priority = Field(Priority.MEDIUM, description="low=10, medium=20, high=30 coins")


class HabitUpdate(BaseModel):
    """
    Request body for PATCH /habits/{id}.

    coins_per_completion is not editable: it stays at the value set
    when the habit was created.
    """
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    priority: Optional[Priority] = None


class HabitState(BaseModel):
    """A habit with its completion history and derived streaks."""
    id: int
    name: str
    description: str
    priority: Priority
    created_at: str
    completed_dates: List[str] = Field(..., description="Sorted YYYY-MM-DD days")
    streak: int = Field(..., ge=0)
    longest_streak: int = Field(..., ge=0)
    coins_per_completion: int = Field(..., ge=0)


class ToggleRequest(BaseModel):
    """Request body for POST /habits/{id}/toggle. Defaults to today."""
    date: Optional[str] = Field(None, description="Calendar day YYYY-MM-DD")


# ============================================
# Stats
# ============================================

class UserStatsState(BaseModel):
    total_coins: int
    total_habits_completed: int = Field(..., ge=0)
    current_streak: int = Field(..., ge=0)
    level: int = Field(..., ge=1)


class UserStatsUpdate(BaseModel):
    """
    Explicit partial update of the stats row.

    Unset fields are left alone. Level is always derived from
    total_habits_completed and cannot be set.
    """
    total_coins: Optional[int] = None
    total_habits_completed: Optional[int] = Field(None, ge=0)
    current_streak: Optional[int] = Field(None, ge=0)


class ProgressState(BaseModel):
    level: int
    completions_into_level: int
    completions_for_next_level: int
    remaining: int
    progress_percent: float


class Achievement(BaseModel):
    name: str
    icon: str
    description: str


# ============================================
# Moods
# ============================================

class MoodEntryCreate(BaseModel):
    """Request body for PUT /moods/{entry_date}."""
    mood: int = Field(..., ge=1, le=5, description="1 (worst) to 5 (best)")
    note: Optional[str] = Field(None, max_length=1000)


class MoodEntryState(BaseModel):
    date: str
    mood: int = Field(..., ge=1, le=5)
    note: Optional[str] = None


class MoodSummary(BaseModel):
    entry_count: int
    average_mood: float
    trend: MoodTrend
    recent: List[MoodEntryState]


class DayActivity(BaseModel):
    """One cell of the month calendar."""
    date: str
    completed_habit_ids: List[int]
    completed_count: int
    habit_count: int
    completion_rate: float = Field(..., description="Percent of habits completed that day")
    mood: Optional[MoodEntryState] = None
    is_today: bool
    is_future: bool


# ============================================
# Shop
# ============================================

class ShopItem(BaseModel):
    id: str
    name: str
    description: str
    price: int = Field(..., ge=0)
    category: str
    icon: str
    purchased: bool = False


class PurchaseRequest(BaseModel):
    item_id: str = Field(..., min_length=1)


# ============================================
# Aggregate state
# ============================================

class AppState(BaseModel):
    """Everything the client renders, reloaded after every mutation."""
    habits: List[HabitState]
    user_stats: UserStatsState
    mood_entries: List[MoodEntryState]
    purchased_items: List[str]
    loading: bool = False


class DashboardSummary(BaseModel):
    today: date
    today_completions: int
    habit_count: int
    completion_rate: float
    average_streak: float
    best_streak: int
    progress: ProgressState
    achievements: List[Achievement]


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""
    status: str
    database: bool
    version: str


class UserResponse(BaseModel):
    """User info response."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    timezone: str = "UTC"
    created_at: str


class RegisterRequest(BaseModel):
    """Request body for /register endpoint (optional, uses token)."""
    timezone: Optional[str] = Field("UTC", description="IANA timezone for calendar days")


class RegisterResponse(BaseModel):
    user: UserResponse
    state: AppState
    is_new_user: bool
