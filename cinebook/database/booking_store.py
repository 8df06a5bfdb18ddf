"""
Persistence helpers for bookings and shows.

Reads always refresh from the database (``populate_existing``) so a check of
``is_paid`` observes every payment that committed before it. Writes that
resolve a hold are conditional updates/deletes, which makes "mark paid" and
"release" a compare-and-swap against the same row.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from cinebook.core.errors import TransientStorageError
from cinebook.database.models import Booking, Show

logger = logging.getLogger(__name__)


class BookingStore:
    def __init__(self, db: Session):
        self.db = db

    # ---------------- Bookings ----------------
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return (
            self.db.query(Booking)
            .populate_existing()
            .filter(Booking.id == booking_id)
            .first()
        )

    def delete_booking(self, booking_id: str) -> bool:
        """Delete a booking; returns False when it was already gone."""
        deleted = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def delete_unpaid_booking(self, booking_id: str) -> bool:
        """Delete a booking only while it is still unpaid."""
        deleted = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.is_paid.is_(False))
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def mark_paid(self, booking_id: str, now: Optional[datetime] = None) -> bool:
        """Flip ``is_paid`` once; returns False if already paid or deleted."""
        updated = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.is_paid.is_(False))
            .update(
                {Booking.is_paid: True, Booking.updated_at: now or datetime.utcnow()},
                synchronize_session="fetch",
            )
        )
        return updated > 0

    # ---------------- Shows ----------------
    def get_show(self, show_id: int) -> Optional[Show]:
        return (
            self.db.query(Show)
            .populate_existing()
            .filter(Show.id == show_id)
            .first()
        )

    def save_show(self, show: Show) -> None:
        """
        Flush the show. The version column turns a concurrent write into
        ``StaleDataError``; any other database error is transient.
        """
        flag_modified(show, "occupied_seats")
        try:
            self.db.flush()
        except StaleDataError:
            raise
        except SQLAlchemyError as e:
            raise TransientStorageError(f"Failed to save show {show.id}: {e}") from e


def remove_seats(show: Show, seats: Iterable[str]) -> List[str]:
    """
    Remove seat labels from ``show.occupied_seats``.
    Labels that are already absent are skipped. Returns the labels removed.
    """
    occupied = dict(show.occupied_seats or {})
    removed = []
    for seat in seats:
        if seat in occupied:
            del occupied[seat]
            removed.append(seat)
    show.occupied_seats = occupied
    return removed
