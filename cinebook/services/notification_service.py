import html
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session, joinedload

from cinebook.database.models import Booking, Show
from cinebook.utils import send_email

logger = logging.getLogger(__name__)


def build_confirmation_email(booking: Booking) -> Dict[str, str]:
    show = booking.show
    movie_title = show.movie.title if show is not None and show.movie is not None else "Your movie"
    when = show.show_datetime if show is not None else None
    show_date = when.strftime("%A, %d %B %Y") if when else "TBA"
    show_time = when.strftime("%I:%M %p") if when else "TBA"
    seats = ", ".join(booking.booked_seats or [])
    name = booking.user.name or booking.user.email

    subject = f"Payment confirmation {movie_title} booked!"
    text = (
        f"Hi {name},\n\n"
        f"Your booking for {movie_title} is confirmed.\n"
        f"Date: {show_date}\n"
        f"Time: {show_time}\n"
        f"Seats: {seats}\n"
        f"Booking ID: {booking.id}\n\n"
        "Enjoy the show!"
    )
    body = f"""<!DOCTYPE html>
<html lang="en">
<body style="font-family: Arial, sans-serif; line-height: 1.5; color: #333;">
  <h2>Hi {html.escape(name)},</h2>
  <p>Your booking for <strong style="color: #f7484f;">{html.escape(movie_title)}</strong> is confirmed.</p>
  <p>
    <strong>Date:</strong> {html.escape(show_date)}<br/>
    <strong>Time:</strong> {html.escape(show_time)}<br/>
    <strong>Seats:</strong> {html.escape(seats)}<br/>
    <strong>Booking ID:</strong> {html.escape(booking.id)}
  </p>
  <p>Enjoy the show!</p>
</body>
</html>"""
    return {"subject": subject, "text": text, "html": body}


async def send_booking_confirmation(db: Session, booking_id: str) -> bool:
    """
    Email the booking's user a payment confirmation.
    Failures are logged and reported as False; nothing is retried.
    """
    booking = (
        db.query(Booking)
        .options(
            joinedload(Booking.show).joinedload(Show.movie),
            joinedload(Booking.user),
        )
        .filter(Booking.id == booking_id)
        .first()
    )
    if booking is None:
        logger.warning("Confirmation email skipped: booking %s not found", booking_id)
        return False
    if booking.user is None or not booking.user.email:
        logger.warning("Confirmation email skipped: booking %s has no user email", booking_id)
        return False

    message = build_confirmation_email(booking)
    response = await send_email(booking.user.email, message["subject"], message["text"], html=message["html"])
    if response is None:
        logger.error("Confirmation email for booking %s was not sent", booking_id)
        return False

    logger.info("Confirmation email sent for booking %s to %s", booking_id, booking.user.email)
    return True


async def handle_show_booked(db: Session, data: Dict[str, Any]) -> bool:
    """Handler for the ``app/show.booked`` event."""
    booking_id = (data or {}).get("bookingId")
    if not booking_id:
        raise ValueError("app/show.booked event requires bookingId")
    return await send_booking_confirmation(db, str(booking_id))
