from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from config import settings
from db.models import DailyLog, User
from services import daily_log_store
from services.daily_log_sections import (
    SECTIONS,
    MorningPayload,
    ReflectionPayload,
    SectionName,
    apply_reflection,
    completed_sections,
    evaluate_completion,
    get_section,
    merge_section,
)
from services.errors import DailyLogConflict
from utils.datetime_utils import as_utc, resolve_timezone, user_timezone, utcnow

logger = logging.getLogger(__name__)

Mutation = Callable[[DailyLog], bool]


def _timezone_for(user: User, tz_name: str | None = None) -> str:
    if tz_name:
        return resolve_timezone(tz_name)
    return user_timezone(user)


def _mutate_with_retry(db: Session, user_id: int, log_id: int, mutate: Mutation, action: str) -> DailyLog:
    """Read, mutate and conditionally write a log, retrying on version conflicts.

    `mutate` returns True when the log needs to be written back.
    """
    attempts = max(int(settings.DAILY_LOG_MERGE_MAX_ATTEMPTS), 1)
    for attempt in range(1, attempts + 1):
        log = daily_log_store.get_daily_log(db, user_id, log_id)
        if not mutate(log):
            return log
        try:
            return daily_log_store.replace_daily_log(db, user_id, log)
        except DailyLogConflict:
            if attempt == attempts:
                logger.error("Giving up %s on daily log %s after %s attempts", action, log_id, attempts)
                raise
            logger.warning("Retrying %s on daily log %s (attempt %s/%s)", action, log_id, attempt + 1, attempts)
    raise DailyLogConflict(log_id)


def _evaluate(db: Session, user_id: int, log_id: int) -> DailyLog:
    return _mutate_with_retry(db, user_id, log_id, evaluate_completion, "completion check")


def create_daily_log_with_morning(
    db: Session,
    user: User,
    payload: MorningPayload,
    tz_name: str | None = None,
) -> DailyLog:
    """Create today's (or the declared day's) log from a morning check-in."""
    tz = _timezone_for(user, tz_name)
    declared = payload.date or utcnow()
    section = SECTIONS[SectionName.MORNING]
    log = merge_section(
        None,
        section,
        payload,
        create=lambda: daily_log_store.create_daily_log(db, user.id, declared, tz),
    )
    log = daily_log_store.replace_daily_log(db, user.id, log)
    return _evaluate(db, user.id, log.id)


def submit_section(
    db: Session,
    user: User,
    log_id: int,
    section_name: str | SectionName,
    payload: BaseModel,
) -> DailyLog:
    """Merge one section's partial payload into an existing log."""
    section = get_section(section_name)

    def _merge(log: DailyLog) -> bool:
        merge_section(log, section, payload)
        return True

    _mutate_with_retry(db, user.id, log_id, _merge, f"{section.name.value} merge")
    return _evaluate(db, user.id, log_id)


def update_reflection(db: Session, user: User, log_id: int, payload: ReflectionPayload) -> DailyLog:
    def _apply(log: DailyLog) -> bool:
        apply_reflection(log, payload)
        return True

    return _mutate_with_retry(db, user.id, log_id, _apply, "reflection edit")


def get_daily_log_for_day(
    db: Session,
    user: User,
    instant: datetime | None = None,
    tz_name: str | None = None,
) -> DailyLog | None:
    """The log for the local day containing `instant` (default now), if any."""
    tz = _timezone_for(user, tz_name)
    return daily_log_store.find_daily_log_for_day(db, user.id, instant or utcnow(), tz)


def serialize_daily_log(log: DailyLog) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for column in DailyLog.__table__.columns:
        value = getattr(log, column.key)
        if isinstance(value, datetime):
            value = as_utc(value).isoformat()
        result[column.key] = value
    result["completed_sections"] = completed_sections(log)
    result["sections_completed_count"] = len(result["completed_sections"])
    result["sections_total"] = len(SECTIONS)
    return result


def delete_daily_log(db: Session, user: User, log_id: int) -> bool:
    return daily_log_store.delete_daily_log(db, user.id, log_id)
