"""
API Routes for the Habitcoin Backend

Endpoints:
- GET /health: Health check for warm-up
- POST /register: Register/login user
- GET /state: Full user state (habits, stats, moods, purchases)
- POST /habits, PATCH /habits/{id}, DELETE /habits/{id}: Habit CRUD
- POST /habits/{id}/toggle: Complete or undo a habit for a day
- PATCH /stats, POST /stats/recompute: Stats correction and repair
- PUT /moods/{date}, GET /moods/summary: Mood tracking
- GET /shop, POST /shop/purchase: Coin shop
- GET /dashboard: Today's progress summary
- GET /calendar: Per-day completions and moods for a month

Handlers touching the database are plain `def` so FastAPI runs them in
its threadpool; mutations then serialize on the per-user lock.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from habitcoin.models.schemas import (
    AppState,
    DashboardSummary,
    DayActivity,
    HabitCreate,
    HabitUpdate,
    HealthResponse,
    MoodEntryCreate,
    MoodSummary,
    PurchaseRequest,
    RegisterRequest,
    RegisterResponse,
    ShopItem,
    ToggleRequest,
    UserResponse,
    UserStatsUpdate,
)
from habitcoin.models.db_models import User
from habitcoin.exceptions import PersistenceError
from habitcoin.services import catalog, insights, sync
from habitcoin.services.calendar import parse_month, today_for
from habitcoin.services.progression import get_or_create_stats
from habitcoin.api.dependencies import get_current_user, get_firebase_user_info
from habitcoin.database import get_db
from habitcoin.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        timezone=user.timezone or "UTC",
        created_at=user.created_at.isoformat(),
    )


@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint for warm-up pings.
    """
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        database=database_ok,
        version=settings.API_VERSION,
    )


# ============================================
# Protected Endpoints (Require Firebase Auth)
# ============================================

@router.post("/register", response_model=RegisterResponse)
def register_user(
    request: Optional[RegisterRequest] = None,
    firebase_user: dict = Depends(get_firebase_user_info),
    db: Session = Depends(get_db),
) -> RegisterResponse:
    """
    Register a new user or login existing user.

    Called after Firebase authentication on the frontend.
    Creates the account and an empty stats row if new.
    """
    uid = firebase_user["uid"]
    timezone = (request.timezone if request else None) or settings.DEFAULT_TIMEZONE

    existing_user = db.query(User).filter(User.id == uid).first()
    if existing_user:
        logger.info(f"Existing user found: {uid}")
        return RegisterResponse(
            user=_user_response(existing_user),
            state=sync.load_all(db, existing_user),
            is_new_user=False,
        )

    # Rejects unknown timezones before anything is written
    today_for(timezone)

    logger.info(f"Creating new user: {uid}")
    new_user = User(
        id=uid,
        email=firebase_user.get("email") or "",
        display_name=firebase_user.get("display_name"),
        timezone=timezone,
    )
    try:
        db.add(new_user)
        db.flush()
        get_or_create_stats(db, uid)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to register user", user_id=uid, operation="register", cause=e)
    db.refresh(new_user)

    return RegisterResponse(
        user=_user_response(new_user),
        state=sync.load_all(db, new_user),
        is_new_user=True,
    )


@router.get("/state", response_model=AppState)
def get_state(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    """Reload everything the client renders."""
    return sync.refresh_data(db, user)


@router.post("/habits", response_model=AppState, status_code=201)
def create_habit(
    request: HabitCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    return sync.save_habit(db, user, request)


@router.patch("/habits/{habit_id}", response_model=AppState)
def edit_habit(
    habit_id: int,
    request: HabitUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    return sync.update_habit(db, user, habit_id, request)


@router.delete("/habits/{habit_id}", response_model=AppState)
def remove_habit(
    habit_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    """Delete a habit; rewards for its completions are taken back."""
    return sync.delete_habit(db, user, habit_id)


@router.post("/habits/{habit_id}/toggle", response_model=AppState)
def toggle_habit(
    habit_id: int,
    request: Optional[ToggleRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    """
    Complete a habit for a day, or undo the completion if already done.

    Calling this twice for the same day leaves everything as it was.
    """
    day = request.date if request else None
    return sync.toggle_habit_completion(db, user, habit_id, day)


@router.patch("/stats", response_model=AppState)
def patch_stats(
    request: UserStatsUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    return sync.update_user_stats(db, user, request)


@router.post("/stats/recompute", response_model=AppState)
def recompute_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    """Rebuild coins, completion count, streak and level from the ledger."""
    return sync.recompute_user_stats(db, user)


@router.put("/moods/{entry_date}", response_model=AppState)
def save_mood(
    entry_date: str,
    request: MoodEntryCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    return sync.save_mood_entry(db, user, entry_date, request)


@router.get("/moods/summary", response_model=MoodSummary)
def get_mood_summary(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MoodSummary:
    state = sync.load_all(db, user)
    return insights.mood_summary(state.mood_entries)


@router.get("/shop", response_model=list[ShopItem])
def get_shop(
    category: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ShopItem]:
    state = sync.load_all(db, user)
    return [ShopItem(**item) for item in catalog.list_items(state.purchased_items, category)]


@router.post("/shop/purchase", response_model=AppState)
def buy_item(
    request: PurchaseRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppState:
    return sync.purchase_item(db, user, request.item_id)


@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DashboardSummary:
    today = sync.user_today(user)
    state = sync.load_all(db, user, today)
    return insights.dashboard_summary(state, today)


@router.get("/calendar", response_model=list[DayActivity])
def get_calendar(
    month: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DayActivity]:
    """
    Month view; `month` is YYYY-MM and defaults to the user's current month.
    """
    today = sync.user_today(user)
    if month:
        year, month_number = parse_month(month)
    else:
        year, month_number = today.year, today.month

    state = sync.load_all(db, user, today)
    return insights.calendar_month(state, year, month_number, today)
