from sqlalchemy import (
    Column, Integer, Text, Float, Boolean, ForeignKey, Index,
    DateTime,
)
from sqlalchemy.orm import relationship
from db.database import Base
from utils.datetime_utils import utcnow_naive


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    username_normalized = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    token_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    daily_logs = relationship("DailyLog", back_populates="user", cascade="all, delete-orphan")
    insights = relationship("Insight", back_populates="user", cascade="all, delete-orphan")
    weekly_reflections = relationship("WeeklyReflection", back_populates="user", cascade="all, delete-orphan")
    weekly_insights = relationship("WeeklyInsight", back_populates="user", cascade="all, delete-orphan")


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    ai_provider = Column(Text, nullable=False, default="openai")
    api_key_encrypted = Column(Text)
    insight_model = Column(Text)
    # None means "use settings.DEFAULT_TIMEZONE"
    timezone = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    user = relationship("User", back_populates="settings")


class ModelUsageEvent(Base):
    __tablename__ = "model_usage_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    operation = Column(Text)  # daily_insight, weekly_insight
    model_used = Column(Text, nullable=False)
    tokens_in = Column(Integer, default=0)
    tokens_out = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow_naive)


class DailyLog(Base):
    __tablename__ = "daily_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # UTC instant of local midnight in `timezone` on `day_key`
    date = Column(DateTime, nullable=False)
    day_key = Column(Text, nullable=False)  # YYYY-MM-DD in `timezone`
    timezone = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # Morning check-in
    sleep_hours = Column(Float, nullable=False, default=0.0)
    sleep_quality = Column(Integer, nullable=False, default=0)
    dreams = Column(Text)
    morning_mood = Column(Integer, nullable=False, default=0)
    physical_status = Column(Text)
    breakfast = Column(Text)
    morning_completed = Column(Boolean, nullable=False, default=False)

    # Medication dose log
    medication_taken = Column(Boolean, nullable=False, default=False)
    medication_taken_at = Column(DateTime)
    medication_dose = Column(Float, nullable=False, default=0.0)
    ate_within_hour = Column(Boolean, nullable=False, default=False)
    first_hour_feeling = Column(Text)
    reason_for_skipping = Column(Text)
    medication_completed = Column(Boolean, nullable=False, default=False)

    # Midday check-in
    lunch = Column(Text)
    focus_level = Column(Integer, nullable=False, default=0)
    energy_level = Column(Integer, nullable=False, default=0)
    rumination_level = Column(Integer, nullable=False, default=0)
    current_activity = Column(Text)
    distractions = Column(Text)
    had_emotional_event = Column(Boolean, nullable=False, default=False)
    emotional_event = Column(Text)
    coping_strategies = Column(Text)
    midday_completed = Column(Boolean, nullable=False, default=False)

    # Afternoon check-in
    afternoon_snack = Column(Text)
    is_crashing = Column(Boolean, nullable=False, default=False)
    crash_symptoms = Column(Text)
    anxiety_level = Column(Integer)
    is_feeling = Column(Text)
    had_triggering_interaction = Column(Boolean, nullable=False, default=False)
    interaction_details = Column(Text)
    self_worth_tied_to_performance = Column(Integer)
    overextended = Column(Integer)
    afternoon_completed = Column(Boolean, nullable=False, default=False)

    # Evening reflection
    dinner = Column(Text)
    overall_mood = Column(Integer, nullable=False, default=0)
    sleepiness = Column(Integer)
    medication_effectiveness = Column(Text)
    helpful_factors = Column(Text)
    distracting_factors = Column(Text)
    thought_for_tomorrow = Column(Text)
    met_dietary_goals = Column(Boolean, nullable=False, default=False)
    met_physical_activity_goals = Column(Boolean, nullable=False, default=False)
    excessively_isolated = Column(Boolean, nullable=False, default=False)
    evening_completed = Column(Boolean, nullable=False, default=False)

    # Aggregate
    is_complete = Column(Boolean, nullable=False, default=False)
    day_rating = Column(Integer)
    accomplishments = Column(Text)
    challenges = Column(Text)
    gratitude = Column(Text)
    improvements = Column(Text)

    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="daily_logs")
    insight = relationship("Insight", back_populates="daily_log", uselist=False, cascade="all, delete-orphan")


class Insight(Base):
    __tablename__ = "insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    daily_log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False)
    insight_text = Column(Text, nullable=False)
    model_used = Column(Text)
    created_at = Column(DateTime, default=utcnow_naive)

    user = relationship("User", back_populates="insights")
    daily_log = relationship("DailyLog", back_populates="insight")


class WeeklyReflection(Base):
    __tablename__ = "weekly_reflections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    week_start = Column(Text, nullable=False)  # YYYY-MM-DD, always a Monday
    week_end = Column(Text, nullable=False)  # week_start + 6 days

    week_rating = Column(Integer)
    mental_state = Column(Text)
    week_highlights = Column(Text)
    week_challenges = Column(Text)
    lessons_learned = Column(Text)
    next_week_focus = Column(Text)
    gym_days_count = Column(Integer, nullable=False, default=0)
    diet_rating = Column(Integer)
    memorable_family_activities = Column(Text)
    questioned_leaving_job = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    user = relationship("User", back_populates="weekly_reflections")
    insight = relationship(
        "WeeklyInsight", back_populates="weekly_reflection", uselist=False, cascade="all, delete-orphan"
    )


class WeeklyInsight(Base):
    __tablename__ = "weekly_insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    weekly_reflection_id = Column(Integer, ForeignKey("weekly_reflections.id", ondelete="CASCADE"), nullable=False)
    insight_text = Column(Text, nullable=False)
    model_used = Column(Text)
    created_at = Column(DateTime, default=utcnow_naive)

    user = relationship("User", back_populates="weekly_insights")
    weekly_reflection = relationship("WeeklyReflection", back_populates="insight")


# Indexes
Index("idx_model_usage_user_date", ModelUsageEvent.user_id, ModelUsageEvent.created_at)
Index("idx_daily_logs_user_day", DailyLog.user_id, DailyLog.day_key, unique=True)
Index("idx_daily_logs_user_date", DailyLog.user_id, DailyLog.date)
Index("idx_insights_user_log", Insight.user_id, Insight.daily_log_id, unique=True)
Index("idx_insights_user_date", Insight.user_id, Insight.created_at)
Index("idx_weekly_reflections_user_week", WeeklyReflection.user_id, WeeklyReflection.week_start, unique=True)
Index("idx_weekly_insights_user_reflection", WeeklyInsight.user_id, WeeklyInsight.weekly_reflection_id, unique=True)
