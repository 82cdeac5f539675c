from __future__ import annotations

from sqlalchemy.orm import Session

from db.models import ModelUsageEvent


def _to_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def track_usage_from_result(
    db: Session,
    user_id: int,
    result: dict | None,
    model_used: str,
    operation: str,
) -> None:
    """Record token usage for one provider call. The caller commits."""
    if not db or not user_id or not model_used or not isinstance(result, dict):
        return
    db.add(
        ModelUsageEvent(
            user_id=user_id,
            operation=operation,
            model_used=str(result.get("model") or model_used),
            tokens_in=_to_int(result.get("tokens_in", 0)),
            tokens_out=_to_int(result.get("tokens_out", 0)),
        )
    )
