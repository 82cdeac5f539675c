"""Domain errors raised by the daily log lifecycle.

Routers translate these to HTTP responses; nothing in the core retries on them
except the optimistic-concurrency merge loop in ``daily_log_service``.
"""
from __future__ import annotations


NOT_FOUND_MESSAGE = "Daily log not found"


class DailyLogError(Exception):
    """Base class for daily log lifecycle failures."""


class InvalidTimezone(DailyLogError):
    """Raised when a timezone name is empty, malformed, or unknown."""

    def __init__(self, tz_name: str | None):
        self.tz_name = tz_name
        super().__init__(f"Invalid timezone: {tz_name!r}")


class DuplicateDayLog(DailyLogError):
    """Raised when a log already exists for the user's local day."""

    def __init__(self, user_id: int, day_key: str):
        self.user_id = user_id
        self.day_key = day_key
        super().__init__(f"A daily log already exists for {day_key}")


class DailyLogNotFound(DailyLogError):
    """Raised when a log does not exist for the caller."""

    def __init__(self, log_id: int | None = None):
        self.log_id = log_id
        super().__init__(NOT_FOUND_MESSAGE)


class DailyLogAccessDenied(DailyLogNotFound):
    """Raised when a log exists but belongs to another user.

    Carries the same message as ``DailyLogNotFound`` so callers cannot tell the
    two apart from the response.
    """

    def __init__(self, log_id: int | None, owner_id: int | None, caller_id: int | None):
        self.owner_id = owner_id
        self.caller_id = caller_id
        super().__init__(log_id)


class DailyLogIdentityChanged(DailyLogError):
    """Raised when a write would alter a log's owner or day."""

    def __init__(self, log_id: int | None, fields: list[str]):
        self.log_id = log_id
        self.fields = fields
        super().__init__(f"Daily log identity is immutable: {', '.join(fields)}")


class DailyLogConflict(DailyLogError):
    """Raised when a log was modified by another writer since it was read."""

    def __init__(self, log_id: int | None):
        self.log_id = log_id
        super().__init__(f"Daily log {log_id} was modified concurrently")


class InsightUnavailable(DailyLogError):
    """Raised when insight generation cannot run for the user."""


WEEKLY_NOT_FOUND_MESSAGE = "Weekly reflection not found"


class WeeklyReflectionNotFound(DailyLogError):
    """Raised when a weekly reflection is missing or owned by someone else."""

    def __init__(self, reflection_id: int | None = None):
        self.reflection_id = reflection_id
        super().__init__(WEEKLY_NOT_FOUND_MESSAGE)


class DuplicateWeeklyReflection(DailyLogError):
    """Raised when the user already reflected on the week."""

    def __init__(self, user_id: int, week_start: str):
        self.user_id = user_id
        self.week_start = week_start
        super().__init__(f"A weekly reflection already exists for the week of {week_start}")
