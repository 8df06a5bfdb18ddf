# cinebook/routers/booking_routes.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cinebook.core.errors import (
    BookingNotFoundError,
    SeatUnavailableError,
    ShowNotFoundError,
    TransientStorageError,
)
from cinebook.database import schemas
from cinebook.database.database import get_db
from cinebook.events import SHOW_BOOKED, dispatch_event
from cinebook.services import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(payload: schemas.BookingCreate, db: Session = Depends(get_db)):
    """Hold seats for a user; the hold expires unless payment is confirmed."""
    try:
        return booking_service.create_booking(db, payload.user_id, payload.show_id, payload.seats)
    except ShowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SeatUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError as e:
        logger.warning("Booking creation failed: %s", e)
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")


@router.post("/{booking_id}/confirm-payment", response_model=schemas.PaymentConfirmation)
def confirm_payment(
    booking_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        booking, newly_paid = booking_service.confirm_payment(db, booking_id)
    except BookingNotFoundError:
        raise HTTPException(
            status_code=404,
            detail="Booking not found; the seat hold may have expired",
        )
    except TransientStorageError as e:
        logger.warning("Payment confirmation failed: %s", e)
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    if newly_paid:
        background_tasks.add_task(dispatch_event, SHOW_BOOKED, {"bookingId": booking.id})

    return schemas.PaymentConfirmation(
        booking=schemas.BookingResponse.model_validate(booking),
        newly_paid=newly_paid,
    )
