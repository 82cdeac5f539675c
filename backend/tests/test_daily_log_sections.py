from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.models import DailyLog  # noqa: E402
from services.daily_log_sections import (  # noqa: E402
    SECTIONS,
    AfternoonPayload,
    EveningPayload,
    MedicationPayload,
    MiddayPayload,
    MorningPayload,
    ReflectionPayload,
    SectionName,
    apply_reflection,
    completed_sections,
    evaluate_completion,
    get_section,
    merge_section,
)
from services.errors import DailyLogNotFound  # noqa: E402


def _blank_log() -> DailyLog:
    log = DailyLog(user_id=1, day_key="2025-07-06", timezone="America/New_York", is_complete=False)
    for section in SECTIONS.values():
        for name, value in section.defaults.items():
            setattr(log, name, value)
        setattr(log, section.completed_attr, False)
    return log


def _merge(log, name: SectionName, payload):
    return merge_section(log, SECTIONS[name], payload)


def test_morning_merge_creates_record_through_factory():
    created = []

    def _create():
        log = _blank_log()
        created.append(log)
        return log

    log = merge_section(None, SECTIONS[SectionName.MORNING], MorningPayload(sleep_hours=7.5, sleep_quality=8), create=_create)

    assert created == [log]
    assert log.sleep_hours == 7.5
    assert log.sleep_quality == 8
    assert log.morning_completed is True
    assert log.is_complete is False


def test_non_morning_merge_on_missing_record_is_not_found():
    with pytest.raises(DailyLogNotFound):
        merge_section(None, SECTIONS[SectionName.MIDDAY], MiddayPayload(focus_level=5))


def test_merge_rejects_payload_for_another_section():
    with pytest.raises(TypeError):
        _merge(_blank_log(), SectionName.MIDDAY, MorningPayload(sleep_hours=6))


def test_skipped_medication_clears_dose_fields():
    log = _blank_log()
    _merge(
        log,
        SectionName.MEDICATION,
        MedicationPayload(
            medication_taken=True,
            medication_taken_at=datetime(2025, 7, 6, 12, 0, tzinfo=timezone.utc),
            medication_dose=20,
            ate_within_hour=True,
            first_hour_feeling="Focused",
        ),
    )
    assert log.medication_taken_at == datetime(2025, 7, 6, 12, 0)

    _merge(log, SectionName.MEDICATION, MedicationPayload(medication_taken=False, reason_for_skipping="Weekend"))

    assert log.medication_taken is False
    assert log.medication_taken_at is None
    assert log.medication_dose == 0.0
    assert log.ate_within_hour is False
    assert log.first_hour_feeling is None
    assert log.reason_for_skipping == "Weekend"
    assert log.medication_completed is True


def test_naive_medication_time_is_local_to_the_log():
    log = _blank_log()
    _merge(
        log,
        SectionName.MEDICATION,
        MedicationPayload(medication_taken=True, medication_taken_at=datetime(2025, 7, 6, 8, 0)),
    )
    # 08:00 in New York during DST is 12:00 UTC.
    assert log.medication_taken_at == datetime(2025, 7, 6, 12, 0)

    log.timezone = "Asia/Tokyo"
    _merge(
        log,
        SectionName.MEDICATION,
        MedicationPayload(medication_taken_at=datetime(2025, 7, 6, 8, 0)),
    )
    assert log.medication_taken_at == datetime(2025, 7, 5, 23, 0)


def test_taking_medication_clears_skip_reason():
    log = _blank_log()
    _merge(log, SectionName.MEDICATION, MedicationPayload(medication_taken=False, reason_for_skipping="Forgot"))
    _merge(log, SectionName.MEDICATION, MedicationPayload(medication_taken=True, medication_dose=10))
    assert log.reason_for_skipping is None
    assert log.medication_dose == 10


def test_branch_uses_stored_flag_when_payload_omits_it():
    log = _blank_log()
    _merge(log, SectionName.AFTERNOON, AfternoonPayload(is_crashing=False, crash_symptoms="headache"))
    assert log.crash_symptoms is None

    _merge(log, SectionName.AFTERNOON, AfternoonPayload(is_crashing=True, crash_symptoms="headache"))
    _merge(log, SectionName.AFTERNOON, AfternoonPayload(anxiety_level=4))
    assert log.crash_symptoms == "headache"
    assert log.anxiety_level == 4


def test_emotional_event_details_cleared_when_flag_drops():
    log = _blank_log()
    _merge(
        log,
        SectionName.MIDDAY,
        MiddayPayload(had_emotional_event=True, emotional_event="Argument", coping_strategies="Walk"),
    )
    _merge(log, SectionName.MIDDAY, MiddayPayload(had_emotional_event=False))
    assert log.emotional_event is None
    assert log.coping_strategies is None


def test_resubmitting_a_section_leaves_other_sections_untouched():
    log = _blank_log()
    _merge(log, SectionName.MIDDAY, MiddayPayload(focus_level=3, lunch="Salad"))
    _merge(log, SectionName.AFTERNOON, AfternoonPayload(afternoon_snack="Apple", anxiety_level=6))
    _merge(log, SectionName.MIDDAY, MiddayPayload(focus_level=9))

    assert log.focus_level == 9
    assert log.lunch == "Salad"
    assert log.afternoon_snack == "Apple"
    assert log.anxiety_level == 6
    assert log.afternoon_completed is True


def test_explicit_null_resets_field_to_default():
    log = _blank_log()
    _merge(log, SectionName.MORNING, MorningPayload(sleep_hours=8, dreams="Flying"))
    _merge(log, SectionName.MORNING, MorningPayload(sleep_hours=None, dreams=None))
    assert log.sleep_hours == 0.0
    assert log.dreams is None


def test_empty_submission_still_completes_and_never_uncompletes():
    log = _blank_log()
    for name in SectionName:
        payload = SECTIONS[name].payload_model()
        _merge(log, name, payload)
        assert getattr(log, SECTIONS[name].completed_attr) is True
    for name in SectionName:
        _merge(log, name, SECTIONS[name].payload_model())
    assert completed_sections(log) == [name.value for name in SectionName]


def test_merge_does_not_touch_is_complete():
    log = _blank_log()
    for name in SectionName:
        _merge(log, name, SECTIONS[name].payload_model())
    assert log.is_complete is False
    assert evaluate_completion(log) is True
    assert log.is_complete is True
    assert evaluate_completion(log) is False


def test_is_complete_requires_all_five_flags():
    log = _blank_log()
    for name in list(SectionName)[:-1]:
        _merge(log, name, SECTIONS[name].payload_model())
        evaluate_completion(log)
        assert log.is_complete is False
    _merge(log, SectionName.EVENING, EveningPayload(overall_mood=7, day_rating=8))
    evaluate_completion(log)
    assert log.is_complete is True
    assert log.day_rating == 8


def test_reflection_edit_only_touches_summary_fields():
    log = _blank_log()
    _merge(log, SectionName.EVENING, EveningPayload(dinner="Soup", gratitude="Friends"))
    apply_reflection(log, ReflectionPayload(accomplishments="Shipped it"))
    assert log.dinner == "Soup"
    assert log.gratitude == "Friends"
    assert log.accomplishments == "Shipped it"
    assert log.evening_completed is True


def test_rating_bounds_are_validated():
    with pytest.raises(ValidationError):
        MiddayPayload(focus_level=11)
    with pytest.raises(ValidationError):
        MorningPayload(sleep_hours=25)


def test_unknown_section_name():
    assert get_section("evening").name is SectionName.EVENING
    with pytest.raises(ValueError):
        get_section("night")
