from __future__ import annotations

import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ai.context_builder import build_weekly_insight_prompt  # noqa: E402
from db.database import Base  # noqa: E402
from db.models import ModelUsageEvent, User, UserSettings, WeeklyInsight, WeeklyReflection  # noqa: E402
from services import insight_service  # noqa: E402
from services.daily_log_sections import SECTIONS, EveningPayload, MorningPayload, SectionName  # noqa: E402
from services.daily_log_service import create_daily_log_with_morning, submit_section  # noqa: E402
from services.errors import DuplicateWeeklyReflection, InsightUnavailable, WeeklyReflectionNotFound  # noqa: E402
from services.weekly_reflection_service import (  # noqa: E402
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
from utils.encryption import encrypt_api_key  # noqa: E402


EDT = timezone(timedelta(hours=-4))


class _FakeProvider:
    def __init__(self, reply: str = "## Week\nGym days lifted your mood."):
        self.reply = reply
        self.calls: list[dict] = []

    def get_insight_model(self) -> str:
        return "fake-model"

    async def chat(self, messages, model, system="", max_tokens=2048):
        self.calls.append({"messages": messages, "model": model, "system": system})
        return {"content": self.reply, "tokens_in": 200, "tokens_out": 60, "model": model}


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str = "weekly_user", api_key: str | None = "sk-test") -> User:
    user = User(username=username, username_normalized=username, password_hash="hash", display_name="Weekly User")
    user.settings = UserSettings(
        ai_provider="anthropic",
        api_key_encrypted=encrypt_api_key(api_key) if api_key else None,
        timezone="America/New_York",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_week_start_is_normalized_to_monday():
    db = _new_db()
    user = _new_user(db)

    reflection = create_weekly_reflection(
        db, user, WeeklyReflectionCreate(week_start=date(2025, 7, 3), week_rating=7, gym_days_count=3)
    )

    assert reflection.week_start == "2025-06-30"
    assert reflection.week_end == "2025-07-06"
    assert reflection.questioned_leaving_job is False
    assert find_weekly_reflection(db, user.id, date(2025, 7, 6)).id == reflection.id
    assert find_weekly_reflection(db, user.id, date(2025, 7, 7)) is None


def test_one_reflection_per_week():
    db = _new_db()
    user = _new_user(db)
    create_weekly_reflection(db, user, WeeklyReflectionCreate(week_start=date(2025, 6, 30)))

    with pytest.raises(DuplicateWeeklyReflection):
        create_weekly_reflection(db, user, WeeklyReflectionCreate(week_start=date(2025, 7, 4)))

    other = _new_user(db, "other_weekly")
    create_weekly_reflection(db, other, WeeklyReflectionCreate(week_start=date(2025, 7, 4)))
    assert db.query(WeeklyReflection).count() == 2


def test_update_is_partial_and_null_resets_counts():
    db = _new_db()
    user = _new_user(db)
    reflection = create_weekly_reflection(
        db,
        user,
        WeeklyReflectionCreate(
            week_start=date(2025, 6, 30),
            mental_state="Steady",
            gym_days_count=4,
            questioned_leaving_job=True,
        ),
    )

    updated = update_weekly_reflection(
        db, user, reflection.id, WeeklyReflectionUpdate(week_highlights="Beach day", gym_days_count=None)
    )

    assert updated.week_highlights == "Beach day"
    assert updated.mental_state == "Steady"
    assert updated.gym_days_count == 0
    assert updated.questioned_leaving_job is True
    assert updated.week_start == "2025-06-30"


def test_foreign_reflection_reads_as_missing():
    db = _new_db()
    owner = _new_user(db, "owner_weekly")
    intruder = _new_user(db, "intruder_weekly")
    reflection = create_weekly_reflection(db, owner, WeeklyReflectionCreate(week_start=date(2025, 6, 30)))

    with pytest.raises(WeeklyReflectionNotFound):
        get_weekly_reflection(db, intruder.id, reflection.id)
    with pytest.raises(WeeklyReflectionNotFound):
        update_weekly_reflection(db, intruder, reflection.id, WeeklyReflectionUpdate(week_rating=1))
    with pytest.raises(WeeklyReflectionNotFound):
        delete_weekly_reflection(db, intruder, reflection.id)
    assert get_weekly_reflection(db, owner.id, reflection.id).week_rating is None


def test_list_filters_by_range_and_averages_ratings():
    db = _new_db()
    user = _new_user(db)
    for monday, rating in [(date(2025, 6, 16), 4), (date(2025, 6, 23), None), (date(2025, 6, 30), 8)]:
        create_weekly_reflection(db, user, WeeklyReflectionCreate(week_start=monday, week_rating=rating))

    everything = list_weekly_reflections(db, user.id)
    assert [r.week_start for r in everything] == ["2025-06-30", "2025-06-23", "2025-06-16"]
    assert average_week_rating(everything) == 6.0

    june = list_weekly_reflections(db, user.id, start=date(2025, 6, 1), end=date(2025, 6, 30))
    assert [r.week_start for r in june] == ["2025-06-23", "2025-06-16"]
    assert [r.week_start for r in list_weekly_reflections(db, user.id, limit=1)] == ["2025-06-30"]
    assert average_week_rating([]) is None

    with pytest.raises(ValueError):
        list_weekly_reflections(db, user.id, start=date(2025, 7, 1), end=date(2025, 6, 1))


def test_weekly_prompt_lists_only_complete_days():
    db = _new_db()
    user = _new_user(db)
    partial = create_daily_log_with_morning(
        db, user, MorningPayload(date=datetime(2025, 7, 1, 8, 0, tzinfo=EDT), sleep_hours=5)
    )
    assert partial.is_complete is False
    reflection = create_weekly_reflection(
        db,
        user,
        WeeklyReflectionCreate(week_start=date(2025, 6, 30), gym_days_count=2, memorable_family_activities="Picnic"),
    )

    prompt = build_weekly_insight_prompt(reflection, [partial])

    assert "Monday, June 30, 2025 to Sunday, July 06, 2025" in prompt
    assert "Gym days this week: 2/7" in prompt
    assert "Memorable family activities: Picnic" in prompt
    assert "Questioned leaving job: No" in prompt
    assert "No daily logs were completed during this week." in prompt
    assert "Action Plan" in prompt


def test_generate_weekly_insight_replaces_previous_and_tracks_usage(monkeypatch):
    db = _new_db()
    user = _new_user(db)
    log = create_daily_log_with_morning(
        db, user, MorningPayload(date=datetime(2025, 7, 2, 8, 0, tzinfo=EDT), sleep_hours=7, sleep_quality=6)
    )
    for name in (SectionName.MEDICATION, SectionName.MIDDAY, SectionName.AFTERNOON):
        submit_section(db, user, log.id, name, SECTIONS[name].payload_model())
    submit_section(db, user, log.id, SectionName.EVENING, EveningPayload(overall_mood=8, met_dietary_goals=True))
    reflection = create_weekly_reflection(db, user, WeeklyReflectionCreate(week_start=date(2025, 6, 30)))

    fake = _FakeProvider()
    monkeypatch.setattr(insight_service, "get_provider", lambda *a, **k: fake)

    asyncio.run(insight_service.generate_weekly_insight(db, user, reflection.id))
    fake.reply = "Second week take."
    second = asyncio.run(insight_service.generate_weekly_insight(db, user, reflection.id))

    sent = fake.calls[0]["messages"][0]["content"]
    assert "DAILY LOGS SUMMARY (1 logs)" in sent
    assert "Wednesday, Jul 02" in sent
    assert "Met dietary goals: Yes" in sent
    assert "weekly reflections" in fake.calls[0]["system"]
    assert second.insight_text == "Second week take."
    assert db.query(WeeklyInsight).count() == 1
    assert insight_service.get_weekly_insight(db, user, reflection.id) == "Second week take."
    assert db.query(ModelUsageEvent).filter(ModelUsageEvent.operation == "weekly_insight").count() == 2
    assert [row["week_start"] for row in insight_service.list_weekly_insights(db, user)] == ["2025-06-30"]
    assert serialize_weekly_reflection(get_weekly_reflection(db, user.id, reflection.id))["has_insight"] is True


def test_weekly_insight_needs_key_and_ownership(monkeypatch):
    db = _new_db()
    keyless = _new_user(db, "keyless_weekly", api_key=None)
    reflection = create_weekly_reflection(db, keyless, WeeklyReflectionCreate(week_start=date(2025, 6, 30)))
    monkeypatch.setattr(insight_service, "get_provider", lambda *a, **k: _FakeProvider())

    with pytest.raises(InsightUnavailable):
        asyncio.run(insight_service.generate_weekly_insight(db, keyless, reflection.id))
    assert insight_service.get_weekly_insight(db, keyless, reflection.id) == ""

    other = _new_user(db, "other_weekly_key")
    with pytest.raises(WeeklyReflectionNotFound):
        asyncio.run(insight_service.generate_weekly_insight(db, other, reflection.id))


def test_deleting_reflection_removes_its_insight(monkeypatch):
    db = _new_db()
    user = _new_user(db)
    reflection = create_weekly_reflection(db, user, WeeklyReflectionCreate(week_start=date(2025, 6, 30)))
    monkeypatch.setattr(insight_service, "get_provider", lambda *a, **k: _FakeProvider())
    asyncio.run(insight_service.generate_weekly_insight(db, user, reflection.id))

    delete_weekly_reflection(db, user, reflection.id)

    assert db.query(WeeklyReflection).count() == 0
    assert db.query(WeeklyInsight).count() == 0
