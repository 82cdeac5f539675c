"""Weekly reflections: one free-form look back per user per Monday-to-Sunday week.

Weeks are identified by the local date of their Monday, the same civil-date
convention daily logs use for ``day_key``.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models import User, WeeklyReflection
from services.errors import DuplicateWeeklyReflection, WeeklyReflectionNotFound
from utils.datetime_utils import as_utc, start_of_week, today_for_tz, user_timezone

logger = logging.getLogger(__name__)

# Non-null columns; an explicit null in an update resets them to these.
WEEKLY_DEFAULTS: dict[str, Any] = {
    "gym_days_count": 0,
    "questioned_leaving_job": False,
}


class WeeklyReflectionUpdate(BaseModel):
    week_rating: Optional[int] = Field(default=None, ge=1, le=10)
    mental_state: Optional[str] = None
    week_highlights: Optional[str] = None
    week_challenges: Optional[str] = None
    lessons_learned: Optional[str] = None
    next_week_focus: Optional[str] = None
    gym_days_count: Optional[int] = Field(default=None, ge=0, le=7)
    diet_rating: Optional[int] = Field(default=None, ge=1, le=10)
    memorable_family_activities: Optional[str] = None
    questioned_leaving_job: Optional[bool] = None


class WeeklyReflectionCreate(WeeklyReflectionUpdate):
    # Any day of the week; normalized to its Monday. Defaults to the current week.
    week_start: Optional[date] = None


REFLECTION_FIELDS = tuple(WeeklyReflectionUpdate.model_fields)


def week_bounds(d: date) -> tuple[date, date]:
    monday = start_of_week(d)
    return monday, monday + timedelta(days=6)


def _apply(reflection: WeeklyReflection, payload: WeeklyReflectionUpdate) -> None:
    sent = payload.model_dump(include=set(REFLECTION_FIELDS), exclude_unset=True)
    for name, value in sent.items():
        if value is None and name in WEEKLY_DEFAULTS:
            value = WEEKLY_DEFAULTS[name]
        setattr(reflection, name, value)


def find_weekly_reflection(db: Session, user_id: int, week_start: date) -> WeeklyReflection | None:
    monday, _ = week_bounds(week_start)
    return (
        db.query(WeeklyReflection)
        .filter(WeeklyReflection.user_id == user_id, WeeklyReflection.week_start == monday.isoformat())
        .first()
    )


def create_weekly_reflection(db: Session, user: User, payload: WeeklyReflectionCreate) -> WeeklyReflection:
    week_of = payload.week_start or today_for_tz(user_timezone(user))
    monday, sunday = week_bounds(week_of)
    if find_weekly_reflection(db, user.id, monday) is not None:
        raise DuplicateWeeklyReflection(user.id, monday.isoformat())

    reflection = WeeklyReflection(
        user_id=user.id,
        week_start=monday.isoformat(),
        week_end=sunday.isoformat(),
        gym_days_count=0,
        questioned_leaving_job=False,
    )
    _apply(reflection, payload)
    db.add(reflection)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateWeeklyReflection(user.id, monday.isoformat()) from exc
    db.refresh(reflection)
    logger.info("Created weekly reflection %s for user %s, week of %s", reflection.id, user.id, reflection.week_start)
    return reflection


def get_weekly_reflection(db: Session, user_id: int, reflection_id: int) -> WeeklyReflection:
    reflection = db.query(WeeklyReflection).filter(WeeklyReflection.id == reflection_id).first()
    if reflection is None:
        raise WeeklyReflectionNotFound(reflection_id)
    if reflection.user_id != user_id:
        logger.warning(
            "User %s attempted to access weekly reflection %s owned by user %s",
            user_id, reflection_id, reflection.user_id,
        )
        raise WeeklyReflectionNotFound(reflection_id)
    return reflection


def list_weekly_reflections(
    db: Session,
    user_id: int,
    start: date | None = None,
    end: date | None = None,
    limit: int | None = None,
) -> list[WeeklyReflection]:
    """Reflections whose week lies within [start, end], newest week first."""
    if start is not None and end is not None and start > end:
        raise ValueError("start must not be after end")
    query = db.query(WeeklyReflection).filter(WeeklyReflection.user_id == user_id)
    if start is not None:
        query = query.filter(WeeklyReflection.week_start >= start.isoformat())
    if end is not None:
        query = query.filter(WeeklyReflection.week_end <= end.isoformat())
    query = query.order_by(WeeklyReflection.week_start.desc())
    if limit is not None:
        query = query.limit(max(limit, 0))
    return query.all()


def update_weekly_reflection(
    db: Session, user: User, reflection_id: int, payload: WeeklyReflectionUpdate
) -> WeeklyReflection:
    """Partial update. The week itself cannot be moved."""
    reflection = get_weekly_reflection(db, user.id, reflection_id)
    _apply(reflection, payload)
    db.commit()
    db.refresh(reflection)
    return reflection


def delete_weekly_reflection(db: Session, user: User, reflection_id: int) -> None:
    reflection = get_weekly_reflection(db, user.id, reflection_id)
    week = reflection.week_start
    db.delete(reflection)
    db.commit()
    logger.info("Deleted weekly reflection %s for user %s, week of %s", reflection_id, user.id, week)


def average_week_rating(reflections: list[WeeklyReflection]) -> float | None:
    ratings = [r.week_rating for r in reflections if r.week_rating is not None]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)


def serialize_weekly_reflection(reflection: WeeklyReflection) -> dict:
    data = {
        "id": reflection.id,
        "week_start": reflection.week_start,
        "week_end": reflection.week_end,
    }
    for name in REFLECTION_FIELDS:
        data[name] = getattr(reflection, name)
    data["has_insight"] = reflection.insight is not None
    data["created_at"] = as_utc(reflection.created_at).isoformat() if reflection.created_at else None
    data["updated_at"] = as_utc(reflection.updated_at).isoformat() if reflection.updated_at else None
    return data
