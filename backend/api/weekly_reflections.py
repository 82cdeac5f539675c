import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.errors import (
    WEEKLY_NOT_FOUND_MESSAGE,
    DuplicateWeeklyReflection,
    InsightUnavailable,
    WeeklyReflectionNotFound,
)
from services.insight_service import (
    generate_weekly_insight,
    get_weekly_insight,
    list_weekly_insights,
    serialize_weekly_insight,
)
from services.weekly_reflection_service import (
    WeeklyReflectionCreate,
    WeeklyReflectionUpdate,
    average_week_rating,
    create_weekly_reflection,
    delete_weekly_reflection,
    find_weekly_reflection,
    get_weekly_reflection,
    list_weekly_reflections,
    serialize_weekly_reflection,
    update_weekly_reflection,
)
from utils.datetime_utils import today_for_tz, user_timezone

router = APIRouter(prefix="/weekly-reflections", tags=["weekly-reflections"])
logger = logging.getLogger(__name__)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=WEEKLY_NOT_FOUND_MESSAGE)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reflection(
    req: WeeklyReflectionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        reflection = create_weekly_reflection(db, user, req)
    except DuplicateWeeklyReflection as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return serialize_weekly_reflection(reflection)


@router.get("")
def list_reflections(
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: Optional[int] = Query(default=None, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Reflections newest week first, optionally limited to weeks inside [start, end]."""
    try:
        reflections = list_weekly_reflections(db, user.id, start=start, end=end, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "reflections": [serialize_weekly_reflection(r) for r in reflections],
        "average_week_rating": average_week_rating(reflections),
    }


@router.get("/current")
def get_current_week(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    reflection = find_weekly_reflection(db, user.id, today_for_tz(user_timezone(user)))
    return serialize_weekly_reflection(reflection) if reflection else None


@router.get("/insights")
def get_weekly_insights(
    limit: int = 30,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_weekly_insights(db, user, limit=limit)


@router.get("/{reflection_id}")
def get_reflection(reflection_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        reflection = get_weekly_reflection(db, user.id, reflection_id)
    except WeeklyReflectionNotFound:
        raise _not_found()
    return serialize_weekly_reflection(reflection)


@router.patch("/{reflection_id}")
def update_reflection(
    reflection_id: int,
    req: WeeklyReflectionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        reflection = update_weekly_reflection(db, user, reflection_id, req)
    except WeeklyReflectionNotFound:
        raise _not_found()
    return serialize_weekly_reflection(reflection)


@router.delete("/{reflection_id}")
def remove_reflection(reflection_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        delete_weekly_reflection(db, user, reflection_id)
    except WeeklyReflectionNotFound:
        raise _not_found()
    return {"success": True}


@router.get("/{reflection_id}/insight")
def get_insight(reflection_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        text = get_weekly_insight(db, user, reflection_id)
    except WeeklyReflectionNotFound:
        raise _not_found()
    return {"weekly_reflection_id": reflection_id, "insight": text}


@router.post("/{reflection_id}/insight")
async def generate_insight(reflection_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Generate (or regenerate) the AI insight for one week."""
    try:
        insight = await generate_weekly_insight(db, user, reflection_id)
    except WeeklyReflectionNotFound:
        raise _not_found()
    except InsightUnavailable as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException as e:
        raise HTTPException(status_code=502, detail=f"Weekly insight generation failed: {e.detail}")
    except Exception as e:
        logger.error(f"Weekly insight generation failed for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail=f"Weekly insight generation failed: {str(e)}")
    return serialize_weekly_insight(insight)
