import logging
from datetime import date

from sqlalchemy.orm import Session

from ai.context_builder import (
    INSIGHT_SYSTEM_PROMPT,
    WEEKLY_INSIGHT_SYSTEM_PROMPT,
    build_daily_insight_prompt,
    build_weekly_insight_prompt,
)
from ai.providers import get_provider
from ai.usage_tracker import track_usage_from_result
from config import settings as app_settings
from db.models import DailyLog, Insight, User, WeeklyInsight, WeeklyReflection
from services.daily_log_store import get_daily_log, list_daily_logs_in_range
from services.errors import InsightUnavailable
from services.weekly_reflection_service import get_weekly_reflection
from utils.datetime_utils import as_utc
from utils.encryption import decrypt_api_key

logger = logging.getLogger(__name__)


def _provider_for(user: User):
    user_settings = user.settings
    if not user_settings or not user_settings.api_key_encrypted:
        raise InsightUnavailable("No API key configured. Add one in settings to generate insights.")
    api_key = decrypt_api_key(user_settings.api_key_encrypted)
    return get_provider(user_settings.ai_provider, api_key, user_settings.insight_model)


async def generate_daily_insight(db: Session, user: User, log_id: int) -> Insight:
    """Generate an AI insight for one of the user's logs, replacing any previous one."""
    log = get_daily_log(db, user.id, log_id)
    if not log.is_complete:
        logger.warning("Generating insight for incomplete daily log %s (user %s)", log.id, user.id)

    provider = _provider_for(user)
    model = provider.get_insight_model()
    try:
        result = await provider.chat(
            messages=[{"role": "user", "content": build_daily_insight_prompt(log)}],
            model=model,
            system=INSIGHT_SYSTEM_PROMPT,
            max_tokens=app_settings.INSIGHT_MAX_TOKENS,
        )
    except Exception as e:
        logger.error(f"Insight generation failed for daily log {log.id}: {e}")
        raise

    content = (result.get("content") or "").strip()
    if not content:
        raise ValueError("The AI provider returned an empty insight.")

    db.query(Insight).filter(Insight.user_id == user.id, Insight.daily_log_id == log.id).delete()
    insight = Insight(
        user_id=user.id,
        daily_log_id=log.id,
        insight_text=content,
        model_used=str(result.get("model") or model),
    )
    db.add(insight)
    track_usage_from_result(
        db=db,
        user_id=user.id,
        result=result,
        model_used=model,
        operation="daily_insight",
    )
    db.commit()
    db.refresh(insight)
    logger.info("Stored insight %s for daily log %s (user %s)", insight.id, log.id, user.id)
    return insight


def get_daily_insight(db: Session, user: User, log_id: int) -> str:
    """Stored insight text for a log, or an empty string. Never generates."""
    log = get_daily_log(db, user.id, log_id)
    insight = (
        db.query(Insight)
        .filter(Insight.user_id == user.id, Insight.daily_log_id == log.id)
        .first()
    )
    return insight.insight_text if insight else ""


def serialize_insight(insight: Insight, log: DailyLog | None = None) -> dict:
    log = log or insight.daily_log
    return {
        "id": insight.id,
        "daily_log_id": insight.daily_log_id,
        "day": log.day_key if log else None,
        "day_rating": log.day_rating if log else None,
        "insight": insight.insight_text,
        "model_used": insight.model_used,
        "created_at": as_utc(insight.created_at).isoformat() if insight.created_at else None,
    }


def list_insights(db: Session, user: User, limit: int = 30) -> list[dict]:
    rows = (
        db.query(Insight, DailyLog)
        .join(DailyLog, DailyLog.id == Insight.daily_log_id)
        .filter(Insight.user_id == user.id, DailyLog.user_id == user.id)
        .order_by(DailyLog.day_key.desc())
        .limit(max(limit, 0))
        .all()
    )
    return [serialize_insight(insight, log) for insight, log in rows]


async def generate_weekly_insight(db: Session, user: User, reflection_id: int) -> WeeklyInsight:
    """Generate an AI insight for a weekly reflection and the week's complete logs."""
    reflection = get_weekly_reflection(db, user.id, reflection_id)
    logs = list_daily_logs_in_range(
        db, user.id, date.fromisoformat(reflection.week_start), date.fromisoformat(reflection.week_end)
    )

    provider = _provider_for(user)
    model = provider.get_insight_model()
    try:
        result = await provider.chat(
            messages=[{"role": "user", "content": build_weekly_insight_prompt(reflection, logs)}],
            model=model,
            system=WEEKLY_INSIGHT_SYSTEM_PROMPT,
            max_tokens=app_settings.INSIGHT_MAX_TOKENS,
        )
    except Exception as e:
        logger.error(f"Weekly insight generation failed for reflection {reflection.id}: {e}")
        raise

    content = (result.get("content") or "").strip()
    if not content:
        raise ValueError("The AI provider returned an empty insight.")

    db.query(WeeklyInsight).filter(
        WeeklyInsight.user_id == user.id, WeeklyInsight.weekly_reflection_id == reflection.id
    ).delete()
    insight = WeeklyInsight(
        user_id=user.id,
        weekly_reflection_id=reflection.id,
        insight_text=content,
        model_used=str(result.get("model") or model),
    )
    db.add(insight)
    track_usage_from_result(
        db=db,
        user_id=user.id,
        result=result,
        model_used=model,
        operation="weekly_insight",
    )
    db.commit()
    db.refresh(insight)
    logger.info("Stored weekly insight %s for week of %s (user %s)", insight.id, reflection.week_start, user.id)
    return insight


def get_weekly_insight(db: Session, user: User, reflection_id: int) -> str:
    reflection = get_weekly_reflection(db, user.id, reflection_id)
    insight = (
        db.query(WeeklyInsight)
        .filter(WeeklyInsight.user_id == user.id, WeeklyInsight.weekly_reflection_id == reflection.id)
        .first()
    )
    return insight.insight_text if insight else ""


def serialize_weekly_insight(insight: WeeklyInsight, reflection: WeeklyReflection | None = None) -> dict:
    reflection = reflection or insight.weekly_reflection
    return {
        "id": insight.id,
        "weekly_reflection_id": insight.weekly_reflection_id,
        "week_start": reflection.week_start if reflection else None,
        "week_end": reflection.week_end if reflection else None,
        "week_rating": reflection.week_rating if reflection else None,
        "insight": insight.insight_text,
        "model_used": insight.model_used,
        "created_at": as_utc(insight.created_at).isoformat() if insight.created_at else None,
    }


def list_weekly_insights(db: Session, user: User, limit: int = 30) -> list[dict]:
    rows = (
        db.query(WeeklyInsight, WeeklyReflection)
        .join(WeeklyReflection, WeeklyReflection.id == WeeklyInsight.weekly_reflection_id)
        .filter(WeeklyInsight.user_id == user.id, WeeklyReflection.user_id == user.id)
        .order_by(WeeklyReflection.week_start.desc())
        .limit(max(limit, 0))
        .all()
    )
    return [serialize_weekly_insight(insight, reflection) for insight, reflection in rows]
