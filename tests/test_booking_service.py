from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from cinebook.core.errors import (
    BookingNotFoundError,
    SeatUnavailableError,
    ShowNotFoundError,
    TransientStorageError,
)
from cinebook.database.booking_store import BookingStore
from cinebook.database.models import Booking, HoldTimer, Show
from cinebook.services import booking_service
from cinebook.services.hold_service import release_seats_and_delete_booking

from conftest import BOOKED_AT


class TestCreateBooking:
    def test_occupies_seats_and_arms_timer(self, db, show, user):
        booking = booking_service.create_booking(db, user.id, show.id, ["a1", " A2 ", "A1"], now=BOOKED_AT)

        assert booking.booked_seats == ["A1", "A2"]
        assert booking.is_paid is False
        assert booking.amount == 400.0
        assert db.get(Show, show.id).occupied_seats == {"A1": user.id, "A2": user.id}

        timer = db.query(HoldTimer).filter(HoldTimer.booking_id == booking.id).one()
        assert timer.due_at == BOOKED_AT + timedelta(minutes=10)

    def test_taken_seat_is_rejected_without_side_effects(self, db, show, user, make_hold):
        make_hold(["A2"], booking_id="B1")

        with pytest.raises(SeatUnavailableError) as exc:
            booking_service.create_booking(db, user.id, show.id, ["A1", "A2"])

        assert exc.value.seats == ["A2"]
        assert db.get(Show, show.id).occupied_seats == {"A2": "B1"}
        assert db.query(Booking).count() == 1

    def test_unknown_show(self, db, user):
        with pytest.raises(ShowNotFoundError):
            booking_service.create_booking(db, user.id, 999, ["A1"])

    def test_empty_seat_list(self, db, show, user):
        with pytest.raises(ValueError):
            booking_service.create_booking(db, user.id, show.id, ["  "])

    def test_released_seats_can_be_booked_again(self, db, show, user):
        first = booking_service.create_booking(db, user.id, show.id, ["A1"])
        release_seats_and_delete_booking(db, first.id)

        second = booking_service.create_booking(db, user.id, show.id, ["A1"])

        assert db.get(Show, show.id).occupied_seats == {"A1": user.id}
        assert second.id != first.id


class TestConfirmPayment:
    def test_marks_paid_once(self, db, make_hold):
        make_hold(["A1"], booking_id="B1")

        booking, newly_paid = booking_service.confirm_payment(db, "B1")
        again, newly_paid_again = booking_service.confirm_payment(db, "B1")

        assert booking.is_paid and newly_paid
        assert again.is_paid and not newly_paid_again

    def test_storage_error_while_reloading_is_transient(self, db, make_hold, monkeypatch):
        make_hold(["A1"], booking_id="B1")

        def broken_get(self, booking_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(BookingStore, "get_booking", broken_get)

        with pytest.raises(TransientStorageError):
            booking_service.confirm_payment(db, "B1")

    def test_payment_after_release_fails_harmlessly(self, db, make_hold):
        make_hold(["A1"], booking_id="B1")
        release_seats_and_delete_booking(db, "B1")

        with pytest.raises(BookingNotFoundError):
            booking_service.confirm_payment(db, "B1")
        assert db.get(Booking, "B1") is None
