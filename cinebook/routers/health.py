# cinebook/routers/health.py
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from cinebook.core.redis import health_check_redis
from cinebook.database.database import get_db
from cinebook.database.models import HoldTimer

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    return {"status": "ok"}


@router.get("/redis")
async def redis_health():
    """
    Lightweight health check for Redis (used for admin role caching).
    """
    result = await health_check_redis()
    if result.get("status") != "healthy":
        raise HTTPException(status_code=503, detail=f"Redis error: {result.get('error')}")
    return result


@router.get("/timers")
def timers_health(db: Session = Depends(get_db)):
    """
    Pending and overdue hold timers. A growing overdue count means the
    worker is not running or releases keep failing.
    """
    now = datetime.utcnow()
    pending = db.query(func.count(HoldTimer.id)).filter(HoldTimer.completed_at.is_(None)).scalar()
    overdue = (
        db.query(func.count(HoldTimer.id))
        .filter(HoldTimer.completed_at.is_(None), HoldTimer.due_at <= now)
        .scalar()
    )
    failing = (
        db.query(func.count(HoldTimer.id))
        .filter(HoldTimer.completed_at.is_(None), HoldTimer.attempts > 0)
        .scalar()
    )
    return {"ok": True, "pending": pending, "overdue": overdue, "failing": failing}
