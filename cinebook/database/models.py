# cinebook/database/models.py
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from cinebook.database.database import Base


# ==========================
# USER MODEL (mirrored from the identity provider)
# ==========================
class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)  # identity-provider user id
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    image = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = relationship("Booking", back_populates="user")


# ==========================
# MOVIE MODEL
# ==========================
class Movie(Base):
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(150), nullable=False)
    overview = Column(Text, nullable=True)
    poster_url = Column(String(500), nullable=True)
    runtime = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    shows = relationship("Show", back_populates="movie")


# ==========================
# SHOW MODEL
# ==========================
class Show(Base):
    __tablename__ = "shows"

    id = Column(Integer, primary_key=True, index=True)
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=False)
    show_datetime = Column(DateTime, nullable=False)
    show_price = Column(Float, nullable=False, default=0.0)
    # seat label -> id of the user holding or owning it; absent means available
    occupied_seats = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)

    movie = relationship("Movie", back_populates="shows")
    bookings = relationship("Booking", back_populates="show")

    __mapper_args__ = {"version_id_col": version}


# ==========================
# BOOKING MODEL
# ==========================
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    show_id = Column(Integer, ForeignKey("shows.id"), nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    booked_seats = Column(JSON, nullable=False, default=list)
    is_paid = Column(Boolean, nullable=False, default=False)
    payment_link = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="bookings")
    show = relationship("Show", back_populates="bookings")


# ==========================
# HOLD TIMER MODEL (durable deferred release)
# ==========================
class HoldTimer(Base):
    __tablename__ = "hold_timers"

    id = Column(Integer, primary_key=True, index=True)
    # no FK: the timer outlives the booking it releases
    booking_id = Column(String(64), unique=True, nullable=False, index=True)
    due_at = Column(DateTime, nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    lease_owner = Column(String(100), nullable=True)
    lease_expires_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    outcome = Column(String(50), nullable=True)
    completed_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
