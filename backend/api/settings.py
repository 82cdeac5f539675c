import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ai.providers import PROVIDERS
from auth.utils import get_current_user
from config import settings as app_settings
from db.database import get_db
from db.models import User, UserSettings
from utils.datetime_utils import is_valid_timezone, user_timezone
from utils.encryption import encrypt_api_key

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)


class TimezoneUpdate(BaseModel):
    timezone: str


class APIKeyRequest(BaseModel):
    ai_provider: str  # 'anthropic' | 'openai'
    api_key: str
    insight_model: Optional[str] = None


class APIKeyStatusResponse(BaseModel):
    ai_provider: str
    has_api_key: bool
    insight_model: Optional[str] = None


def _settings_row(user: User, db: Session) -> UserSettings:
    s = user.settings
    if s is None:
        s = UserSettings(user_id=user.id)
        db.add(s)
        db.flush()
        user.settings = s
    return s


@router.get("/timezone")
def get_timezone(user: User = Depends(get_current_user)):
    stored = user.settings.timezone if user.settings else None
    return {
        "timezone": user_timezone(user),
        "is_default": not stored or user_timezone(user) != stored.strip(),
        "default_timezone": app_settings.DEFAULT_TIMEZONE,
    }


@router.put("/timezone")
def update_timezone(
    req: TimezoneUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tz_name = (req.timezone or "").strip()
    if not is_valid_timezone(tz_name):
        raise HTTPException(status_code=422, detail=f"Unknown timezone: {req.timezone}")
    s = _settings_row(user, db)
    s.timezone = tz_name
    db.commit()
    logger.info("User %s timezone set to %s", user.id, tz_name)
    return {"status": "ok", "timezone": tz_name}


@router.put("/api-key")
def set_api_key(
    req: APIKeyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    provider = (req.ai_provider or "").strip().lower()
    if provider not in PROVIDERS:
        raise HTTPException(status_code=422, detail=f"Unknown provider: {req.ai_provider}")
    if not (req.api_key or "").strip():
        raise HTTPException(status_code=422, detail="API key must not be empty")

    s = _settings_row(user, db)
    s.ai_provider = provider
    s.api_key_encrypted = encrypt_api_key(req.api_key.strip())
    s.insight_model = (req.insight_model or "").strip() or None
    db.commit()
    return {"status": "ok", "ai_provider": s.ai_provider, "insight_model": s.insight_model}


@router.get("/api-key/status", response_model=APIKeyStatusResponse)
def get_api_key_status(user: User = Depends(get_current_user)):
    s = user.settings
    return APIKeyStatusResponse(
        ai_provider=s.ai_provider if s else "openai",
        has_api_key=bool(s and s.api_key_encrypted),
        insight_model=s.insight_model if s else None,
    )
