# cinebook/database/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfigModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =========================================================
# Events
# =========================================================
class EventEnvelope(BaseModel):
    name: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class EventAccepted(BaseModel):
    success: bool = True
    event: str


# =========================================================
# Bookings
# =========================================================
class BookingCreate(BaseModel):
    show_id: int
    user_id: str
    seats: List[str] = Field(..., min_length=1)


class BookingResponse(ConfigModel):
    id: str
    user_id: Optional[str] = None
    show_id: int
    amount: float
    booked_seats: List[str]
    is_paid: bool
    created_at: Optional[datetime] = None


class PaymentConfirmation(BaseModel):
    success: bool = True
    booking: BookingResponse
    newly_paid: bool


# =========================================================
# Hold timers
# =========================================================
class HoldTimerResponse(ConfigModel):
    id: int
    booking_id: str
    due_at: datetime
    attempts: int
    lease_owner: Optional[str] = None
    lease_expires_at: Optional[datetime] = None
    last_error: Optional[str] = None
    outcome: Optional[str] = None
    completed_at: Optional[datetime] = None
