# cinebook/routers/admin_routes.py
import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cinebook.auth import protect_admin
from cinebook.database import schemas
from cinebook.database.database import get_db
from cinebook.workers import hold_timer_worker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(protect_admin)])


@router.get("/is-admin")
def is_admin(caller_id: str = Depends(protect_admin)):
    return {"success": True, "isAdmin": True, "userId": caller_id}


@router.get("/hold-timers", response_model=List[schemas.HoldTimerResponse])
def list_hold_timers(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Timers that have not fired yet, soonest first."""
    return hold_timer_worker.pending_timers(db, limit=limit)


@router.post("/hold-timers/run")
def run_hold_timers(
    db: Session = Depends(get_db),
    caller_id: str = Depends(protect_admin),
):
    """Fire every due hold timer now instead of waiting for the next poll."""
    fired = hold_timer_worker.process_due_timers(db, owner=f"admin:{caller_id}")
    logger.info("Admin %s ran hold timers manually: %d fired", caller_id, fired)
    return {"success": True, "fired": fired}
