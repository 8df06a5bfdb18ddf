"""CineBook background jobs: seat hold expiry, identity sync, booking emails."""

__version__ = "1.0.0"
