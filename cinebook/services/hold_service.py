# cinebook/services/hold_service.py
"""
Booking hold manager.

Every new booking holds its seats for ``HOLD_DURATION``. A durable timer row is
armed when the booking is created; when it fires, the hold timer worker calls
``release_seats_and_delete_booking``. If payment has not been confirmed by
then, the seats go back to the show and the booking is deleted.

There is no cancellation of the timer on payment: the release step re-reads
``is_paid`` and does nothing for a paid booking.
"""
import enum
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cinebook.core.config import HOLD_DURATION_SECONDS, SHOW_SAVE_RETRIES
from cinebook.core.errors import TransientStorageError
from cinebook.database.booking_store import BookingStore, remove_seats
from cinebook.database.models import HoldTimer

logger = logging.getLogger(__name__)

HOLD_DURATION = timedelta(seconds=HOLD_DURATION_SECONDS)


class HoldOutcome(str, enum.Enum):
    released = "released"
    confirmed = "confirmed"
    already_resolved = "already_resolved"


# ==============================
# Arming the timer
# ==============================
def arm_hold_timer(db: Session, booking_id: str, now: Optional[datetime] = None) -> HoldTimer:
    """
    Schedule the release check for ``now + HOLD_DURATION``.
    Arming twice for the same booking returns the existing timer.
    The caller commits.
    """
    existing = db.query(HoldTimer).filter(HoldTimer.booking_id == booking_id).first()
    if existing is not None:
        logger.debug("Hold timer for booking %s already armed (due %s)", booking_id, existing.due_at)
        return existing

    start = now or datetime.utcnow()
    timer = HoldTimer(booking_id=booking_id, due_at=start + HOLD_DURATION)
    db.add(timer)
    db.flush()
    logger.info("Armed hold timer for booking %s, due at %s", booking_id, timer.due_at)
    return timer


def handle_check_payment(db: Session, data: Dict[str, Any]) -> HoldTimer:
    """Handler for the ``app/checkpayment`` event."""
    booking_id = (data or {}).get("bookingId")
    if not booking_id:
        raise ValueError("app/checkpayment event requires bookingId")
    booking_id = str(booking_id)

    try:
        # The hold runs from booking creation, not from event delivery
        booking = BookingStore(db).get_booking(booking_id)
        start = booking.created_at if booking is not None and booking.created_at else None
        try:
            timer = arm_hold_timer(db, booking_id, now=start)
            db.commit()
        except IntegrityError:
            # Another delivery of the same event armed it concurrently
            db.rollback()
            timer = db.query(HoldTimer).filter(HoldTimer.booking_id == booking_id).one()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStorageError(f"Storage error while arming hold for booking {booking_id}: {e}") from e
    return timer


# ==============================
# Releasing a hold
# ==============================
def _release_once(store: BookingStore, booking_id: str) -> HoldOutcome:
    booking = store.get_booking(booking_id)
    if booking is None:
        logger.info("Booking %s no longer exists; hold already resolved", booking_id)
        return HoldOutcome.already_resolved

    if booking.is_paid:
        logger.info("Booking %s is paid; keeping seats", booking_id)
        return HoldOutcome.confirmed

    show_id = booking.show_id
    seats = list(booking.booked_seats or [])

    if not store.delete_unpaid_booking(booking_id):
        # Lost the race: payment confirmed or another process deleted it
        current = store.get_booking(booking_id)
        if current is not None and current.is_paid:
            logger.info("Booking %s was paid just before release", booking_id)
            return HoldOutcome.confirmed
        logger.info("Booking %s was deleted concurrently", booking_id)
        return HoldOutcome.already_resolved

    show = store.get_show(show_id)
    if show is None:
        logger.warning("Show %s for booking %s is gone; nothing to release", show_id, booking_id)
        return HoldOutcome.released

    removed = remove_seats(show, seats)
    store.save_show(show)
    logger.info(
        "Released booking %s: freed %d/%d seats on show %s",
        booking_id, len(removed), len(seats), show_id,
    )
    return HoldOutcome.released


def release_seats_and_delete_booking(
    db: Session,
    booking_id: str,
    max_attempts: Optional[int] = None,
) -> HoldOutcome:
    """
    Release the seats of an unpaid booking and delete it.

    Seat removal and booking deletion commit together. A concurrent write to
    the show is retried from the start; any other storage failure is rolled
    back and raised as ``TransientStorageError`` so the caller can retry the
    whole check later. Safe to run any number of times for the same booking.
    """
    attempts = max_attempts or SHOW_SAVE_RETRIES
    store = BookingStore(db)

    for attempt in range(1, attempts + 1):
        try:
            outcome = _release_once(store, booking_id)
            db.commit()
            return outcome
        except StaleDataError:
            db.rollback()
            logger.warning(
                "Show changed while releasing booking %s (attempt %d/%d); retrying",
                booking_id, attempt, attempts,
            )
        except TransientStorageError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStorageError(f"Storage error while releasing booking {booking_id}: {e}") from e

    raise TransientStorageError(
        f"Show kept changing while releasing booking {booking_id}; gave up after {attempts} attempts"
    )
