"""
Durable hold timers.

Timers live in the ``hold_timers`` table, so they survive restarts. A polling
pass claims due timers under a lease, runs the release check for each one and
marks it completed. A worker that dies mid-run simply lets its lease expire;
the timer is then claimed again by the next pass. Transient storage failures
push the timer back with exponential backoff.

Run a single pass by hand with: ``python -m cinebook.workers.hold_timer_worker``
"""
import asyncio
import logging
import os
import socket
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cinebook.core.config import (
    HOLD_BATCH_SIZE,
    HOLD_LEASE_SECONDS,
    HOLD_POLL_INTERVAL_SECONDS,
    HOLD_RETRY_BASE_SECONDS,
    HOLD_RETRY_MAX_SECONDS,
)
from cinebook.core.errors import TransientStorageError
from cinebook.database.database import SessionLocal
from cinebook.database.models import HoldTimer
from cinebook.services.hold_service import HoldOutcome, release_seats_and_delete_booking

logger = logging.getLogger(__name__)


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


def retry_delay(attempts: int) -> timedelta:
    """Backoff after the n-th failed attempt: base, 2*base, 4*base ... capped."""
    seconds = HOLD_RETRY_BASE_SECONDS * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, HOLD_RETRY_MAX_SECONDS))


def _claimable(now: datetime):
    return (
        HoldTimer.completed_at.is_(None),
        HoldTimer.due_at <= now,
        or_(HoldTimer.lease_expires_at.is_(None), HoldTimer.lease_expires_at < now),
    )


def claim_due_timers(
    db: Session,
    owner: str,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
    lease_seconds: Optional[int] = None,
) -> List[HoldTimer]:
    """
    Lease up to ``limit`` due timers to ``owner``.
    Each claim is a conditional update, so two workers never hold the same timer.
    """
    now = now or datetime.utcnow()
    limit = limit or HOLD_BATCH_SIZE
    lease = timedelta(seconds=lease_seconds or HOLD_LEASE_SECONDS)

    candidates = (
        db.query(HoldTimer.id)
        .filter(*_claimable(now))
        .order_by(HoldTimer.due_at)
        .limit(limit)
        .all()
    )

    claimed_ids = []
    for (timer_id,) in candidates:
        updated = (
            db.query(HoldTimer)
            .filter(HoldTimer.id == timer_id, *_claimable(now))
            .update(
                {HoldTimer.lease_owner: owner, HoldTimer.lease_expires_at: now + lease},
                synchronize_session=False,
            )
        )
        if updated:
            claimed_ids.append(timer_id)
    db.commit()

    if not claimed_ids:
        return []
    return (
        db.query(HoldTimer)
        .filter(HoldTimer.id.in_(claimed_ids))
        .order_by(HoldTimer.due_at)
        .all()
    )


def _complete(db: Session, timer_id: int, outcome: HoldOutcome, now: datetime) -> None:
    db.query(HoldTimer).filter(HoldTimer.id == timer_id, HoldTimer.completed_at.is_(None)).update(
        {
            HoldTimer.completed_at: now,
            HoldTimer.outcome: outcome.value,
            HoldTimer.lease_owner: None,
            HoldTimer.lease_expires_at: None,
            HoldTimer.last_error: None,
        },
        synchronize_session=False,
    )
    db.commit()


def _reschedule(db: Session, timer_id: int, error: str, now: datetime) -> Optional[HoldTimer]:
    timer = db.get(HoldTimer, timer_id, populate_existing=True)
    if timer is None or timer.completed_at is not None:
        return timer
    timer.attempts = (timer.attempts or 0) + 1
    timer.due_at = now + retry_delay(timer.attempts)
    timer.last_error = error[:2000]
    timer.lease_owner = None
    timer.lease_expires_at = None
    db.commit()
    return timer


def run_timer(
    db: Session,
    timer_id: int,
    booking_id: str,
    now: Optional[datetime] = None,
) -> Optional[HoldOutcome]:
    """
    Fire one claimed timer. Returns the outcome, or None when the release
    failed transiently and the timer was rescheduled.
    """
    now = now or datetime.utcnow()
    try:
        outcome = release_seats_and_delete_booking(db, booking_id)
        _complete(db, timer_id, outcome, now)
    except TransientStorageError as e:
        db.rollback()
        timer = _reschedule(db, timer_id, str(e), now)
        logger.warning(
            "Hold release for booking %s failed (attempt %s), retrying at %s: %s",
            booking_id,
            timer.attempts if timer is not None else "?",
            timer.due_at if timer is not None else "-",
            e,
        )
        return None
    except Exception as e:
        # Unexpected errors back off too, so one bad booking cannot stall the batch
        db.rollback()
        logger.exception("Hold release for booking %s raised unexpectedly", booking_id)
        _reschedule(db, timer_id, f"{type(e).__name__}: {e}", now)
        return None

    logger.info("Hold timer for booking %s fired: %s", booking_id, outcome.value)
    return outcome


def process_due_timers(
    db: Session,
    owner: Optional[str] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> int:
    """Claim and fire every due timer using ``db``. Returns how many fired."""
    owner = owner or default_owner()
    now = now or datetime.utcnow()
    timers = claim_due_timers(db, owner, now=now, limit=limit)
    jobs: List[Tuple[int, str]] = [(t.id, t.booking_id) for t in timers]

    for timer_id, booking_id in jobs:
        run_timer(db, timer_id, booking_id, now=now)
    return len(jobs)


def run_due_timers(
    session_factory: Callable[[], Session] = SessionLocal,
    owner: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """One polling pass with a fresh session."""
    db = session_factory()
    try:
        return process_due_timers(db, owner=owner, now=now)
    finally:
        db.close()


def pending_timers(db: Session, limit: int = 100) -> List[HoldTimer]:
    return (
        db.query(HoldTimer)
        .filter(HoldTimer.completed_at.is_(None))
        .order_by(HoldTimer.due_at)
        .limit(limit)
        .all()
    )


class HoldTimerWorker:
    """Background loop started from the app lifespan."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: float = HOLD_POLL_INTERVAL_SECONDS,
        owner: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.owner = owner or default_owner()
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="hold-timer-worker")
        logger.info("Hold timer worker started (owner=%s, every %ss)", self.owner, self.interval_seconds)

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Hold timer worker stopped")

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                fired = await asyncio.to_thread(run_due_timers, self.session_factory, self.owner)
                if fired:
                    logger.info("Hold timer pass fired %d timer(s)", fired)
            except Exception:
                # Leases expire on their own; the next pass picks the timers up again
                logger.exception("Hold timer pass failed")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Running one hold timer pass...")
    fired = run_due_timers()
    logger.info("Hold timer pass complete. Fired %d timer(s).", fired)
