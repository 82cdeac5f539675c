"""Persistence of DailyLog records, one per (user, local day).

Every read and write is scoped to the caller's user id. Writes go through
``replace_daily_log`` which relies on the ``version`` column so a stale
read-modify-write fails loudly instead of discarding another section's update.
"""
from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from db.models import DailyLog
from services.errors import (
    DailyLogAccessDenied,
    DailyLogConflict,
    DailyLogIdentityChanged,
    DailyLogNotFound,
    DuplicateDayLog,
)
from utils.datetime_utils import day_key, local_midnight, to_storage

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("user_id", "date", "day_key", "timezone")


def _day_key_str(d: date) -> str:
    return d.isoformat()


def _find_by_key(db: Session, user_id: int, key: str) -> DailyLog | None:
    return (
        db.query(DailyLog)
        .filter(DailyLog.user_id == user_id, DailyLog.day_key == key)
        .first()
    )


def create_daily_log(db: Session, user_id: int, day: datetime, tz_name: str) -> DailyLog:
    """Create an empty log for the local day containing `day`.

    The caller commits. Raises DuplicateDayLog if the day already has a log.
    """
    local_day = day_key(day, tz_name)
    key = _day_key_str(local_day)
    if _find_by_key(db, user_id, key) is not None:
        raise DuplicateDayLog(user_id, key)

    log = DailyLog(
        user_id=user_id,
        date=to_storage(local_midnight(local_day, tz_name)),
        day_key=key,
        timezone=tz_name,
        morning_completed=False,
        medication_completed=False,
        midday_completed=False,
        afternoon_completed=False,
        evening_completed=False,
        is_complete=False,
    )
    db.add(log)
    try:
        db.flush()
    except IntegrityError as exc:
        # Lost a creation race against another request for the same day.
        db.rollback()
        raise DuplicateDayLog(user_id, key) from exc
    logger.info("Created daily log %s for user %s on %s (%s)", log.id, user_id, key, tz_name)
    return log


def get_daily_log(db: Session, user_id: int, log_id: int) -> DailyLog:
    log = db.query(DailyLog).filter(DailyLog.id == log_id).first()
    if log is None:
        raise DailyLogNotFound(log_id)
    if log.user_id != user_id:
        logger.warning("User %s attempted to access daily log %s owned by user %s", user_id, log_id, log.user_id)
        raise DailyLogAccessDenied(log_id, log.user_id, user_id)
    return log


def find_daily_log_for_day(db: Session, user_id: int, instant: datetime, tz_name: str) -> DailyLog | None:
    """Return the log whose local day matches `instant` in tz_name, or None."""
    return _find_by_key(db, user_id, _day_key_str(day_key(instant, tz_name)))


def list_daily_logs_in_range(db: Session, user_id: int, start: date, end: date) -> list[DailyLog]:
    """Logs with day in [start, end] inclusive, oldest first."""
    if start > end:
        raise ValueError("start must not be after end")
    return (
        db.query(DailyLog)
        .filter(
            DailyLog.user_id == user_id,
            DailyLog.day_key >= _day_key_str(start),
            DailyLog.day_key <= _day_key_str(end),
        )
        .order_by(DailyLog.day_key.asc())
        .all()
    )


def list_daily_logs(db: Session, user_id: int) -> list[DailyLog]:
    return (
        db.query(DailyLog)
        .filter(DailyLog.user_id == user_id)
        .order_by(DailyLog.day_key.desc())
        .all()
    )


def list_recent_daily_logs(db: Session, user_id: int, limit: int) -> list[DailyLog]:
    if limit <= 0:
        return []
    return (
        db.query(DailyLog)
        .filter(DailyLog.user_id == user_id)
        .order_by(DailyLog.day_key.desc())
        .limit(limit)
        .all()
    )


def _changed_identity_fields(log: DailyLog) -> list[str]:
    state = sa_inspect(log)
    if state.transient or state.pending:
        return []
    return [name for name in IDENTITY_FIELDS if state.attrs[name].history.has_changes()]


def replace_daily_log(db: Session, user_id: int, log: DailyLog) -> DailyLog:
    """Write back a previously fetched log and commit.

    The store does not merge fields; the caller owns read-modify-write. Raises
    DailyLogConflict when another writer committed first.
    """
    if log.user_id != user_id:
        logger.warning("User %s attempted to write daily log %s owned by user %s", user_id, log.id, log.user_id)
        raise DailyLogAccessDenied(log.id, log.user_id, user_id)
    changed = _changed_identity_fields(log)
    if changed:
        raise DailyLogIdentityChanged(log.id, changed)

    log_id = log.id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent update detected on daily log %s for user %s", log_id, user_id)
        raise DailyLogConflict(log_id) from exc
    db.refresh(log)
    return log


def delete_daily_log(db: Session, user_id: int, log_id: int) -> bool:
    """Delete a log and its insight. Raises if absent or owned by someone else."""
    log = get_daily_log(db, user_id, log_id)
    key = log.day_key
    db.delete(log)
    db.commit()
    logger.info("Deleted daily log %s (%s) for user %s", log_id, key, user_id)
    return True
