import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cinebook.core.config import SHOW_SAVE_RETRIES
from cinebook.core.errors import (
    BookingNotFoundError,
    SeatUnavailableError,
    ShowNotFoundError,
    TransientStorageError,
)
from cinebook.database.booking_store import BookingStore
from cinebook.database.models import Booking
from cinebook.services.hold_service import arm_hold_timer

logger = logging.getLogger(__name__)


def _normalize_seats(seats: List[str]) -> List[str]:
    normalized: List[str] = []
    for seat in seats or []:
        label = str(seat).strip().upper()
        if label and label not in normalized:
            normalized.append(label)
    if not normalized:
        raise ValueError("At least one seat is required")
    return normalized


def create_booking(
    db: Session,
    user_id: str,
    show_id: int,
    seats: List[str],
    now: Optional[datetime] = None,
) -> Booking:
    """
    Occupy the seats, insert an unpaid booking and arm its hold timer,
    all in one transaction.
    """
    labels = _normalize_seats(seats)
    created_at = now or datetime.utcnow()
    store = BookingStore(db)

    for attempt in range(1, SHOW_SAVE_RETRIES + 1):
        try:
            show = store.get_show(show_id)
            if show is None:
                raise ShowNotFoundError(show_id)

            occupied = dict(show.occupied_seats or {})
            taken = [s for s in labels if s in occupied]
            if taken:
                raise SeatUnavailableError(taken)

            for seat in labels:
                occupied[seat] = user_id
            show.occupied_seats = occupied
            store.save_show(show)

            booking = Booking(
                id=uuid.uuid4().hex,
                user_id=user_id,
                show_id=show.id,
                amount=float(show.show_price or 0) * len(labels),
                booked_seats=labels,
                is_paid=False,
                created_at=created_at,
            )
            db.add(booking)
            arm_hold_timer(db, booking.id, now=created_at)
            db.commit()
            db.refresh(booking)
            logger.info("Booking %s created for user %s on show %s: %s", booking.id, user_id, show_id, labels)
            return booking
        except StaleDataError:
            db.rollback()
            logger.warning("Show %s changed while booking (attempt %d/%d)", show_id, attempt, SHOW_SAVE_RETRIES)
        except (ShowNotFoundError, SeatUnavailableError, TransientStorageError):
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStorageError(f"Storage error while booking show {show_id}: {e}") from e

    raise TransientStorageError(f"Show {show_id} is too busy; try again")


def confirm_payment(
    db: Session,
    booking_id: str,
    now: Optional[datetime] = None,
) -> Tuple[Booking, bool]:
    """
    Mark a booking paid. Returns ``(booking, newly_paid)``.

    Raises ``BookingNotFoundError`` when the hold has already been released,
    in which case the payment must be refunded by the caller.
    """
    store = BookingStore(db)
    try:
        newly_paid = store.mark_paid(booking_id, now=now)
        db.commit()
        booking = store.get_booking(booking_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStorageError(f"Storage error while confirming booking {booking_id}: {e}") from e

    if booking is None:
        logger.warning("Payment for booking %s arrived after its hold was released", booking_id)
        raise BookingNotFoundError(booking_id)

    if newly_paid:
        logger.info("Booking %s marked paid", booking_id)
    else:
        logger.info("Booking %s was already paid", booking_id)
    return booking, newly_paid
