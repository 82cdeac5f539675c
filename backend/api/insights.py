import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.errors import NOT_FOUND_MESSAGE, DailyLogNotFound, InsightUnavailable
from services.insight_service import generate_daily_insight, get_daily_insight, list_insights, serialize_insight

router = APIRouter(prefix="/insights", tags=["insights"])
logger = logging.getLogger(__name__)


@router.get("")
def get_insights(
    limit: int = 30,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stored insights, newest day first."""
    return list_insights(db, user, limit=limit)


@router.get("/{log_id}")
def get_insight(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        text = get_daily_insight(db, user, log_id)
    except DailyLogNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return {"daily_log_id": log_id, "insight": text}


@router.post("/{log_id}")
async def generate_insight(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Generate (or regenerate) the AI insight for one log."""
    try:
        insight = await generate_daily_insight(db, user, log_id)
    except DailyLogNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    except InsightUnavailable as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException as e:
        raise HTTPException(status_code=502, detail=f"Insight generation failed: {e.detail}")
    except Exception as e:
        logger.error(f"Insight generation failed for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail=f"Insight generation failed: {str(e)}")
    return serialize_insight(insight)
