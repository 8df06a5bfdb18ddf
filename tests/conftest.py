"""
Test configuration and fixtures.

Environment is set before any ``cinebook`` import because config values are
read at import time. Each test gets its own SQLite file so that separate
sessions behave like separate processes (needed for the payment/release races).
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["HOLD_WORKER_ENABLED"] = "false"
os.environ["EVENTS_WEBHOOK_SECRET"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["HOLD_DURATION_SECONDS"] = "600"

from collections.abc import Generator  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402
from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from cinebook.database.database import Base, get_db  # noqa: E402
from cinebook.database.models import Booking, HoldTimer, Movie, Show, User  # noqa: E402

BOOKED_AT = datetime(2026, 10, 17, 18, 0, 0)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cinebook_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db) -> User:
    user = User(id="user_1", email="jane.doe@gmail.com", name="Jane Doe")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def show(db) -> Show:
    movie = Movie(title="Interstellar", runtime=169)
    db.add(movie)
    db.flush()
    show = Show(
        movie_id=movie.id,
        show_datetime=datetime(2026, 10, 18, 19, 30),
        show_price=200.0,
        occupied_seats={},
    )
    db.add(show)
    db.commit()
    return show


def hold_seats(
    db: Session,
    show: Show,
    seats: List[str],
    booking_id: str = "B1",
    user_id: Optional[str] = "user_1",
    is_paid: bool = False,
    created_at: datetime = BOOKED_AT,
    arm_timer: bool = True,
) -> Booking:
    """Put a booking in HOLDING state the way the booking flow leaves it."""
    fresh = db.get(Show, show.id)
    occupied = dict(fresh.occupied_seats or {})
    for seat in seats:
        occupied[seat] = booking_id
    fresh.occupied_seats = occupied

    booking = Booking(
        id=booking_id,
        user_id=user_id,
        show_id=show.id,
        amount=200.0 * len(seats),
        booked_seats=list(seats),
        is_paid=is_paid,
        created_at=created_at,
    )
    db.add(booking)
    if arm_timer:
        db.add(HoldTimer(booking_id=booking_id, due_at=created_at + timedelta(minutes=10)))
    db.commit()
    return booking


@pytest.fixture
def make_hold(db, show, user):
    def _make_hold(seats: List[str], **kwargs) -> Booking:
        return hold_seats(db, show, seats, **kwargs)
    return _make_hold


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    from cinebook.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
