"""The five daily check-in sections and the generic merge/completion rules.

Each section is a row in ``SECTIONS``: its payload model, the record fields it
owns (with their defaults), and the conditional branches whose inactive side is
cleared on every merge. ``merge_section`` and ``evaluate_completion`` are driven
entirely off that table.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from db.models import DailyLog
from services.errors import DailyLogNotFound
from utils.datetime_utils import resolve_timezone, to_local, to_storage


class SectionName(str, enum.Enum):
    MORNING = "morning"
    MEDICATION = "medication"
    MIDDAY = "midday"
    AFTERNOON = "afternoon"
    EVENING = "evening"


# --- Payloads ---
# Every field is optional: only the fields a client sends are applied.

class MorningPayload(BaseModel):
    # Declared day of the entry; only used when the merge creates the log.
    date: Optional[datetime] = None
    sleep_hours: Optional[float] = Field(default=None, ge=0, le=24)
    sleep_quality: Optional[int] = Field(default=None, ge=0, le=10)
    dreams: Optional[str] = None
    morning_mood: Optional[int] = Field(default=None, ge=0, le=10)
    physical_status: Optional[str] = None
    breakfast: Optional[str] = None


class MedicationPayload(BaseModel):
    medication_taken: Optional[bool] = None
    medication_taken_at: Optional[datetime] = None
    medication_dose: Optional[float] = Field(default=None, ge=0)
    ate_within_hour: Optional[bool] = None
    first_hour_feeling: Optional[str] = None
    reason_for_skipping: Optional[str] = None


class MiddayPayload(BaseModel):
    lunch: Optional[str] = None
    focus_level: Optional[int] = Field(default=None, ge=0, le=10)
    energy_level: Optional[int] = Field(default=None, ge=0, le=10)
    rumination_level: Optional[int] = Field(default=None, ge=0, le=10)
    current_activity: Optional[str] = None
    distractions: Optional[str] = None
    had_emotional_event: Optional[bool] = None
    emotional_event: Optional[str] = None
    coping_strategies: Optional[str] = None


class AfternoonPayload(BaseModel):
    afternoon_snack: Optional[str] = None
    is_crashing: Optional[bool] = None
    crash_symptoms: Optional[str] = None
    anxiety_level: Optional[int] = Field(default=None, ge=0, le=10)
    is_feeling: Optional[str] = None
    had_triggering_interaction: Optional[bool] = None
    interaction_details: Optional[str] = None
    self_worth_tied_to_performance: Optional[int] = Field(default=None, ge=0, le=10)
    overextended: Optional[int] = Field(default=None, ge=0, le=10)


class ReflectionPayload(BaseModel):
    day_rating: Optional[int] = Field(default=None, ge=0, le=10)
    accomplishments: Optional[str] = None
    challenges: Optional[str] = None
    gratitude: Optional[str] = None
    improvements: Optional[str] = None


class EveningPayload(ReflectionPayload):
    dinner: Optional[str] = None
    overall_mood: Optional[int] = Field(default=None, ge=0, le=10)
    sleepiness: Optional[int] = Field(default=None, ge=0, le=10)
    medication_effectiveness: Optional[str] = None
    helpful_factors: Optional[str] = None
    distracting_factors: Optional[str] = None
    thought_for_tomorrow: Optional[str] = None
    met_dietary_goals: Optional[bool] = None
    met_physical_activity_goals: Optional[bool] = None
    excessively_isolated: Optional[bool] = None


# --- Section table ---

@dataclass(frozen=True)
class SectionBranch:
    """A boolean flag selecting which of two field groups is meaningful."""

    flag: str
    when_true: tuple[str, ...] = ()
    when_false: tuple[str, ...] = ()

    def inactive_fields(self, flag_value: bool) -> tuple[str, ...]:
        return self.when_false if flag_value else self.when_true


@dataclass(frozen=True)
class Section:
    name: SectionName
    title: str
    payload_model: type[BaseModel]
    defaults: dict[str, Any]
    branches: tuple[SectionBranch, ...] = ()
    creates_record: bool = False

    @property
    def completed_attr(self) -> str:
        return f"{self.name.value}_completed"

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self.defaults)


REFLECTION_DEFAULTS: dict[str, Any] = {
    "day_rating": None,
    "accomplishments": None,
    "challenges": None,
    "gratitude": None,
    "improvements": None,
}

SECTIONS: dict[SectionName, Section] = {
    SectionName.MORNING: Section(
        name=SectionName.MORNING,
        title="Morning check-in",
        payload_model=MorningPayload,
        defaults={
            "sleep_hours": 0.0,
            "sleep_quality": 0,
            "dreams": None,
            "morning_mood": 0,
            "physical_status": None,
            "breakfast": None,
        },
        creates_record=True,
    ),
    SectionName.MEDICATION: Section(
        name=SectionName.MEDICATION,
        title="Medication dose log",
        payload_model=MedicationPayload,
        defaults={
            "medication_taken": False,
            "medication_taken_at": None,
            "medication_dose": 0.0,
            "ate_within_hour": False,
            "first_hour_feeling": None,
            "reason_for_skipping": None,
        },
        branches=(
            SectionBranch(
                flag="medication_taken",
                when_true=("medication_taken_at", "medication_dose", "ate_within_hour", "first_hour_feeling"),
                when_false=("reason_for_skipping",),
            ),
        ),
    ),
    SectionName.MIDDAY: Section(
        name=SectionName.MIDDAY,
        title="Midday check-in",
        payload_model=MiddayPayload,
        defaults={
            "lunch": None,
            "focus_level": 0,
            "energy_level": 0,
            "rumination_level": 0,
            "current_activity": None,
            "distractions": None,
            "had_emotional_event": False,
            "emotional_event": None,
            "coping_strategies": None,
        },
        branches=(
            SectionBranch(flag="had_emotional_event", when_true=("emotional_event", "coping_strategies")),
        ),
    ),
    SectionName.AFTERNOON: Section(
        name=SectionName.AFTERNOON,
        title="Afternoon check-in",
        payload_model=AfternoonPayload,
        defaults={
            "afternoon_snack": None,
            "is_crashing": False,
            "crash_symptoms": None,
            "anxiety_level": None,
            "is_feeling": None,
            "had_triggering_interaction": False,
            "interaction_details": None,
            "self_worth_tied_to_performance": None,
            "overextended": None,
        },
        branches=(
            SectionBranch(flag="is_crashing", when_true=("crash_symptoms",)),
            SectionBranch(flag="had_triggering_interaction", when_true=("interaction_details",)),
        ),
    ),
    SectionName.EVENING: Section(
        name=SectionName.EVENING,
        title="Evening reflection",
        payload_model=EveningPayload,
        defaults={
            "dinner": None,
            "overall_mood": 0,
            "sleepiness": None,
            "medication_effectiveness": None,
            "helpful_factors": None,
            "distracting_factors": None,
            "thought_for_tomorrow": None,
            "met_dietary_goals": False,
            "met_physical_activity_goals": False,
            "excessively_isolated": False,
            **REFLECTION_DEFAULTS,
        },
    ),
}

COMPLETION_ATTRS = tuple(section.completed_attr for section in SECTIONS.values())


def get_section(name: str | SectionName) -> Section:
    try:
        return SECTIONS[SectionName(name)]
    except ValueError as exc:
        raise ValueError(f"Unknown section: {name}") from exc


def _payload_updates(defaults: dict[str, Any], payload: BaseModel, tz_name: str | None) -> dict[str, Any]:
    """Fields the client actually sent, restricted to the ones this section owns.

    An explicit null resets the field to its default rather than violating a
    non-null column. Naive datetimes are wall-clock time in the log's timezone.
    """
    sent = payload.model_dump(include=set(defaults), exclude_unset=True)
    updates: dict[str, Any] = {}
    for name, value in sent.items():
        if value is None:
            value = defaults[name]
        elif isinstance(value, datetime):
            if value.tzinfo is None:
                value = to_local(value, resolve_timezone(tz_name))
            value = to_storage(value)
        updates[name] = value
    return updates


def merge_section(
    log: DailyLog | None,
    section: Section,
    payload: BaseModel,
    create: Callable[[], DailyLog] | None = None,
) -> DailyLog:
    """Apply one section's partial payload to a log and mark the section complete.

    Only the morning section may start from ``None``; it calls ``create`` to
    obtain a fresh log. Fields absent from the payload keep their value. The
    inactive side of each branch is reset to defaults so stale data from an
    earlier submission cannot survive a flipped flag. ``is_complete`` is never
    touched here.
    """
    if not isinstance(payload, section.payload_model):
        raise TypeError(f"{section.name.value} expects {section.payload_model.__name__}")
    if log is None:
        if not section.creates_record or create is None:
            raise DailyLogNotFound()
        log = create()

    for name, value in _payload_updates(section.defaults, payload, log.timezone).items():
        setattr(log, name, value)

    for branch in section.branches:
        for name in branch.inactive_fields(bool(getattr(log, branch.flag))):
            setattr(log, name, section.defaults[name])

    setattr(log, section.completed_attr, True)
    return log


def apply_reflection(log: DailyLog, payload: ReflectionPayload) -> DailyLog:
    """Direct edit of the free-form day summary fields. Completion is untouched."""
    for name, value in _payload_updates(REFLECTION_DEFAULTS, payload, log.timezone).items():
        setattr(log, name, value)
    return log


def completed_sections(log: DailyLog) -> list[str]:
    return [section.name.value for section in SECTIONS.values() if getattr(log, section.completed_attr)]


def is_log_complete(log: DailyLog) -> bool:
    return all(bool(getattr(log, attr)) for attr in COMPLETION_ATTRS)


def evaluate_completion(log: DailyLog) -> bool:
    """Recompute ``is_complete`` from the section flags.

    Returns True when the value changed so callers only write when needed.
    """
    complete = is_log_complete(log)
    if bool(log.is_complete) == complete:
        return False
    log.is_complete = complete
    return True
