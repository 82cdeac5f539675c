from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import User, UserSettings  # noqa: E402
from services.daily_log_sections import (  # noqa: E402
    AfternoonPayload,
    EveningPayload,
    MedicationPayload,
    MiddayPayload,
    MorningPayload,
    SectionName,
)
from services.daily_log_service import create_daily_log_with_morning, submit_section  # noqa: E402
from services.weekly_rollup_service import summarize_week  # noqa: E402

EDT = timezone(timedelta(hours=-4))


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db) -> User:
    user = User(username="weekly", username_normalized="weekly", password_hash="hash", display_name="Weekly")
    user.settings = UserSettings(ai_provider="openai", timezone="America/New_York")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _log_day(db, user, day: date, mood: int, focus: int | None = None, took_meds: bool | None = None):
    at = datetime(day.year, day.month, day.day, 8, 0, tzinfo=EDT)
    log = create_daily_log_with_morning(db, user, MorningPayload(date=at, sleep_hours=7, morning_mood=mood))
    if focus is not None:
        submit_section(db, user, log.id, SectionName.MIDDAY, MiddayPayload(focus_level=focus))
    if took_meds is not None:
        submit_section(db, user, log.id, SectionName.MEDICATION, MedicationPayload(medication_taken=took_meds))
    return log


def test_week_rollup_averages_only_submitted_sections():
    db = _new_db()
    user = _new_user(db)
    monday = date(2025, 6, 30)
    _log_day(db, user, monday, mood=4, focus=6, took_meds=True)
    _log_day(db, user, monday + timedelta(days=2), mood=8, took_meds=False)
    # Outside the week
    _log_day(db, user, monday + timedelta(days=7), mood=1, focus=1)

    summary = summarize_week(db, user, monday)

    assert summary["week_start"] == "2025-06-30"
    assert summary["week_end"] == "2025-07-06"
    assert summary["days_logged"] == 2
    assert summary["days_complete"] == 0
    assert summary["medication_taken_days"] == 1
    assert summary["averages"]["morning_mood"] == 6.0
    # Only the first day submitted a midday check-in
    assert summary["averages"]["focus_level"] == 6.0
    assert summary["averages"]["overall_mood"] is None
    assert [row["day"] for row in summary["days"]] == ["2025-06-30", "2025-07-02"]
    assert summary["days"][1]["focus_level"] is None


def test_empty_week():
    db = _new_db()
    user = _new_user(db)
    summary = summarize_week(db, user, date(2025, 6, 30))
    assert summary["days_logged"] == 0
    assert all(value is None for value in summary["averages"].values())


def test_complete_day_counts_toward_rollup():
    db = _new_db()
    user = _new_user(db)
    day = date(2025, 7, 1)
    log = _log_day(db, user, day, mood=5, focus=5, took_meds=True)
    submit_section(db, user, log.id, SectionName.AFTERNOON, AfternoonPayload(anxiety_level=2))
    submit_section(db, user, log.id, SectionName.EVENING, EveningPayload(overall_mood=9, day_rating=7))

    summary = summarize_week(db, user, date(2025, 6, 30))
    assert summary["days_complete"] == 1
    assert summary["averages"]["overall_mood"] == 9.0
    assert summary["averages"]["day_rating"] == 7.0
