"""
Domain errors raised by the booking services
"""


class BookingNotFoundError(LookupError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class ShowNotFoundError(LookupError):
    def __init__(self, show_id: int):
        super().__init__(f"Show {show_id} not found")
        self.show_id = show_id


class SeatUnavailableError(ValueError):
    def __init__(self, seats):
        super().__init__(f"Seats already occupied: {', '.join(seats)}")
        self.seats = list(seats)


class TransientStorageError(RuntimeError):
    """Storage failed in a way that is safe to retry later."""


class AuthorizerError(RuntimeError):
    """Role lookup against the identity provider failed."""
