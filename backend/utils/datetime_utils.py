import logging
from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings
from services.errors import InvalidTimezone

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_naive() -> datetime:
    """UTC now without tzinfo, matching how DateTime columns are stored."""
    return utcnow().replace(tzinfo=None)


def as_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC for storage."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def get_zone(tz_name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name or raise InvalidTimezone."""
    candidate = (tz_name or "").strip()
    if not candidate:
        raise InvalidTimezone(tz_name)
    try:
        return ZoneInfo(candidate)
    # Directory names such as "America" and over-long names surface as OSError.
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezone(tz_name) from exc


def is_valid_timezone(tz_name: str | None) -> bool:
    try:
        get_zone(tz_name)
    except InvalidTimezone:
        return False
    return True


def resolve_timezone(tz_name: str | None) -> str:
    """Return tz_name when usable, else the configured default.

    A broken timezone preference must never block logging, so this falls back
    instead of raising.
    """
    if tz_name is None or not str(tz_name).strip():
        return settings.DEFAULT_TIMEZONE
    try:
        get_zone(tz_name)
        return str(tz_name).strip()
    except InvalidTimezone:
        logger.warning("Invalid timezone %r, falling back to %s", tz_name, settings.DEFAULT_TIMEZONE)
        return settings.DEFAULT_TIMEZONE


def user_timezone(user) -> str:
    """Resolved timezone name for a user, falling back to the default."""
    return resolve_timezone(getattr(getattr(user, "settings", None), "timezone", None))


def to_local(t: datetime, tz_name: str) -> datetime:
    """Express instant t as wall-clock time in tz_name.

    Naive datetimes are taken to already be wall-clock time in tz_name.
    """
    zone = get_zone(tz_name)
    if t.tzinfo is None:
        return t.replace(tzinfo=zone)
    return t.astimezone(zone)


def day_key(t: datetime, tz_name: str) -> date:
    """Civil calendar date of instant t as observed in tz_name."""
    return to_local(t, tz_name).date()


def same_day(t1: datetime, t2: datetime, tz_name: str) -> bool:
    return day_key(t1, tz_name) == day_key(t2, tz_name)


def local_midnight(d: date, tz_name: str) -> datetime:
    """UTC instant of 00:00 local time on civil date d in tz_name."""
    zone = get_zone(tz_name)
    return datetime(d.year, d.month, d.day, tzinfo=zone).astimezone(timezone.utc)


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the user's timezone."""
    return day_key(utcnow(), resolve_timezone(tz_name))


def start_of_week(d: date) -> date:
    """Return Monday of the week containing d."""
    return d - timedelta(days=d.weekday())
