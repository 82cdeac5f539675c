from datetime import date, datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services import daily_log_store
from services.daily_log_sections import MorningPayload, ReflectionPayload, get_section
from services.daily_log_service import (
    create_daily_log_with_morning,
    delete_daily_log,
    get_daily_log_for_day,
    serialize_daily_log,
    submit_section,
    update_reflection,
)
from services.errors import (
    NOT_FOUND_MESSAGE,
    DailyLogConflict,
    DailyLogIdentityChanged,
    DailyLogNotFound,
    DuplicateDayLog,
)
from services.weekly_rollup_service import summarize_week
from utils.datetime_utils import start_of_week, today_for_tz, user_timezone

router = APIRouter(prefix="/daily-logs", tags=["daily-logs"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, DailyLogNotFound):
        # Covers DailyLogAccessDenied; both read the same to the caller.
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_daily_log(
    req: MorningPayload,
    timezone: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start the day's log with the morning check-in."""
    try:
        log = create_daily_log_with_morning(db, user, req, tz_name=timezone)
    except (DuplicateDayLog, DailyLogConflict) as exc:
        raise _http_error(exc)
    return serialize_daily_log(log)


@router.get("")
def list_daily_logs(
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if start is None and end is None:
        logs = daily_log_store.list_daily_logs(db, user.id)
    else:
        today = today_for_tz(user_timezone(user))
        try:
            logs = daily_log_store.list_daily_logs_in_range(db, user.id, start or date.min, end or today)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    return [serialize_daily_log(log) for log in logs]


@router.get("/today")
def get_today(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    log = get_daily_log_for_day(db, user)
    return serialize_daily_log(log) if log else None


@router.get("/by-day")
def get_by_day(
    at: Optional[datetime] = None,
    timezone: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    log = get_daily_log_for_day(db, user, instant=at, tz_name=timezone)
    return serialize_daily_log(log) if log else None


@router.get("/recent")
def get_recent(
    limit: int = Query(default=7, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    limit = min(limit, settings.RECENT_LOGS_MAX_LIMIT)
    return [serialize_daily_log(log) for log in daily_log_store.list_recent_daily_logs(db, user.id, limit)]


@router.get("/weekly")
def get_weekly(
    start: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    week_start = start or start_of_week(today_for_tz(user_timezone(user)))
    return summarize_week(db, user, week_start)


@router.get("/{log_id}")
def get_daily_log(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        log = daily_log_store.get_daily_log(db, user.id, log_id)
    except DailyLogNotFound as exc:
        raise _http_error(exc)
    return serialize_daily_log(log)


@router.put("/{log_id}/{section}")
def update_section(
    log_id: int,
    section: str,
    body: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Merge a partial section submission into an existing log."""
    try:
        section_def = get_section(section)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown section: {section}")
    try:
        payload = section_def.payload_model.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False))

    try:
        log = submit_section(db, user, log_id, section_def.name, payload)
    except (DailyLogNotFound, DailyLogConflict, DailyLogIdentityChanged) as exc:
        raise _http_error(exc)
    return serialize_daily_log(log)


@router.patch("/{log_id}/reflection")
def patch_reflection(
    log_id: int,
    req: ReflectionPayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        log = update_reflection(db, user, log_id, req)
    except (DailyLogNotFound, DailyLogConflict, DailyLogIdentityChanged) as exc:
        raise _http_error(exc)
    return serialize_daily_log(log)


@router.delete("/{log_id}")
def remove_daily_log(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        delete_daily_log(db, user, log_id)
    except DailyLogNotFound as exc:
        raise _http_error(exc)
    return {"success": True}
