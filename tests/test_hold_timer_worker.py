import asyncio
from datetime import datetime, timedelta

import pytest

from cinebook.core.errors import TransientStorageError
from cinebook.database.models import Booking, HoldTimer, Show
from cinebook.services import booking_service
from cinebook.workers import hold_timer_worker
from cinebook.workers.hold_timer_worker import (
    HoldTimerWorker,
    claim_due_timers,
    process_due_timers,
    retry_delay,
)

from conftest import BOOKED_AT


def _minutes(n):
    return BOOKED_AT + timedelta(minutes=n)


def _state(session_factory, show_id, booking_id):
    session = session_factory()
    try:
        show = session.get(Show, show_id)
        booking = session.get(Booking, booking_id)
        return dict(show.occupied_seats), booking
    finally:
        session.close()


class TestEndToEndScenarios:
    def test_unpaid_hold_expires_after_ten_minutes(self, db, show, make_hold, session_factory):
        make_hold(["A1", "A2"], booking_id="B1")
        assert _state(session_factory, show.id, "B1")[0] == {"A1": "B1", "A2": "B1"}

        assert process_due_timers(db, owner="w1", now=_minutes(9)) == 0
        assert _state(session_factory, show.id, "B1")[1] is not None

        assert process_due_timers(db, owner="w1", now=_minutes(10)) == 1
        occupied, booking = _state(session_factory, show.id, "B1")
        assert occupied == {}
        assert booking is None

        timer = db.query(HoldTimer).filter(HoldTimer.booking_id == "B1").one()
        assert timer.outcome == "released"
        assert timer.completed_at == _minutes(10)

    def test_payment_at_minute_five_keeps_the_booking(self, db, show, make_hold, session_factory):
        make_hold(["A1", "A2"], booking_id="B1")

        assert process_due_timers(db, owner="w1", now=_minutes(5)) == 0
        booking, newly_paid = booking_service.confirm_payment(db, "B1", now=_minutes(5))
        assert newly_paid
        assert booking.updated_at == _minutes(5)

        assert process_due_timers(db, owner="w1", now=_minutes(9)) == 0
        assert process_due_timers(db, owner="w1", now=_minutes(10)) == 1
        occupied, booking = _state(session_factory, show.id, "B1")
        assert occupied == {"A1": "B1", "A2": "B1"}
        assert booking is not None and booking.is_paid

        timer = db.query(HoldTimer).filter(HoldTimer.booking_id == "B1").one()
        assert timer.outcome == "confirmed"

    def test_completed_timers_never_fire_again(self, db, show, make_hold):
        make_hold(["A1"], booking_id="B1")

        assert process_due_timers(db, owner="w1", now=_minutes(10)) == 1
        assert process_due_timers(db, owner="w1", now=_minutes(30)) == 0

    def test_booking_created_through_the_service_is_released(self, db, show, user, session_factory):
        booking = booking_service.create_booking(db, user.id, show.id, ["d4", "D5"], now=BOOKED_AT)

        process_due_timers(db, owner="w1", now=_minutes(10))

        occupied, remaining = _state(session_factory, show.id, booking.id)
        assert occupied == {}
        assert remaining is None


class TestLeases:
    def test_claimed_timer_is_not_handed_to_a_second_worker(self, db, show, make_hold, session_factory):
        make_hold(["A1"], booking_id="B1")

        first = claim_due_timers(db, "w1", now=_minutes(10), lease_seconds=60)
        other = session_factory()
        try:
            second = claim_due_timers(other, "w2", now=_minutes(10) + timedelta(seconds=30))
        finally:
            other.close()

        assert [t.booking_id for t in first] == ["B1"]
        assert second == []

    def test_expired_lease_can_be_reclaimed(self, db, show, make_hold, session_factory):
        make_hold(["A1"], booking_id="B1")
        claim_due_timers(db, "crashed-worker", now=_minutes(10), lease_seconds=60)

        # the claiming worker died before completing; lease runs out
        assert process_due_timers(db, owner="w2", now=_minutes(12)) == 1
        occupied, booking = _state(session_factory, show.id, "B1")
        assert occupied == {}
        assert booking is None


class TestRetries:
    def test_transient_failure_reschedules_with_backoff(self, db, show, make_hold, session_factory, monkeypatch):
        make_hold(["A1"], booking_id="B1")
        calls = []

        def failing_release(session, booking_id, max_attempts=None):
            calls.append(booking_id)
            raise TransientStorageError("database unavailable")

        monkeypatch.setattr(hold_timer_worker, "release_seats_and_delete_booking", failing_release)

        assert process_due_timers(db, owner="w1", now=_minutes(10)) == 1

        timer = db.query(HoldTimer).filter(HoldTimer.booking_id == "B1").one()
        assert timer.attempts == 1
        assert timer.completed_at is None
        assert timer.lease_owner is None
        assert timer.due_at == _minutes(10) + retry_delay(1)
        assert "database unavailable" in timer.last_error
        assert _state(session_factory, show.id, "B1")[1] is not None

    def test_rescheduled_timer_completes_once_storage_recovers(self, db, show, make_hold, session_factory, monkeypatch):
        make_hold(["A1"], booking_id="B1")
        original = hold_timer_worker.release_seats_and_delete_booking
        calls = []

        def flaky_release(session, booking_id, max_attempts=None):
            calls.append(booking_id)
            if len(calls) == 1:
                raise TransientStorageError("database unavailable")
            return original(session, booking_id)

        monkeypatch.setattr(hold_timer_worker, "release_seats_and_delete_booking", flaky_release)

        process_due_timers(db, owner="w1", now=_minutes(10))
        # not due again until the backoff elapses
        assert process_due_timers(db, owner="w1", now=_minutes(10)) == 0
        retry_at = _minutes(10) + retry_delay(1)
        assert process_due_timers(db, owner="w1", now=retry_at) == 1

        timer = db.query(HoldTimer).filter(HoldTimer.booking_id == "B1").one()
        assert timer.outcome == "released"
        assert timer.last_error is None
        assert _state(session_factory, show.id, "B1") == ({}, None)

    def test_unexpected_error_backs_off_without_stalling_the_batch(self, db, show, make_hold, session_factory):
        # corrupt seat list on the earliest-due booking
        make_hold(["A1"], booking_id="BAD", created_at=BOOKED_AT - timedelta(minutes=1))
        bad = db.get(Booking, "BAD")
        bad.booked_seats = [["A1"]]
        db.commit()
        make_hold(["B2"], booking_id="GOOD")

        assert process_due_timers(db, owner="w1", now=_minutes(11)) == 2

        occupied, good = _state(session_factory, show.id, "GOOD")
        assert good is None
        assert occupied == {"A1": "BAD"}

        timers = {t.booking_id: t for t in db.query(HoldTimer).all()}
        assert timers["GOOD"].outcome == "released"
        poisoned = timers["BAD"]
        assert poisoned.completed_at is None
        assert poisoned.attempts == 1
        assert poisoned.lease_owner is None
        assert poisoned.due_at == _minutes(11) + retry_delay(1)
        assert "TypeError" in poisoned.last_error
        # the failed release was rolled back, so the booking is intact
        assert _state(session_factory, show.id, "BAD")[1] is not None

    def test_retry_delay_doubles_and_is_capped(self):
        base = hold_timer_worker.HOLD_RETRY_BASE_SECONDS
        assert retry_delay(1) == timedelta(seconds=base)
        assert retry_delay(2) == timedelta(seconds=base * 2)
        assert retry_delay(3) == timedelta(seconds=base * 4)
        assert retry_delay(50) == timedelta(seconds=hold_timer_worker.HOLD_RETRY_MAX_SECONDS)


class TestWorkerLoop:
    @pytest.mark.asyncio
    async def test_worker_fires_due_timers_in_the_background(self, db, show, make_hold, session_factory):
        # booked long ago, so the timer is already due by the wall clock
        make_hold(["A1"], booking_id="B1", created_at=datetime(2020, 1, 1, 12, 0))
        worker = HoldTimerWorker(session_factory=session_factory, interval_seconds=0.05, owner="bg")

        worker.start()
        try:
            for _ in range(100):
                if _state(session_factory, show.id, "B1")[1] is None:
                    break
                await asyncio.sleep(0.05)
        finally:
            await worker.stop()

        assert not worker.running
        assert _state(session_factory, show.id, "B1") == ({}, None)

    @pytest.mark.asyncio
    async def test_stop_without_start_is_harmless(self, session_factory):
        worker = HoldTimerWorker(session_factory=session_factory)
        await worker.stop()
        assert not worker.running
