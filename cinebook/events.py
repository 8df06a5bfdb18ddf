"""
Named background events and the handlers that consume them.

Producers (the identity provider webhook, the booking flow) post
``{"name": ..., "data": {...}}``; ``dispatch_event`` routes it to the handler
registered for that name. Handlers take ``(db, data)`` and may be sync or async.
"""
import hashlib
import hmac
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from sqlalchemy.orm import Session

from cinebook.database.database import SessionLocal
from cinebook.services import hold_service, notification_service, user_sync_service

logger = logging.getLogger(__name__)

USER_CREATED = "identity/user.created"
USER_UPDATED = "identity/user.updated"
USER_DELETED = "identity/user.deleted"
CHECK_PAYMENT = "app/checkpayment"
SHOW_BOOKED = "app/show.booked"

EventHandler = Callable[[Session, Dict[str, Any]], Union[Any, Awaitable[Any]]]

EVENT_HANDLERS: Dict[str, EventHandler] = {
    USER_CREATED: user_sync_service.sync_user_creation,
    USER_UPDATED: user_sync_service.sync_user_update,
    USER_DELETED: user_sync_service.sync_user_deletion,
    CHECK_PAYMENT: hold_service.handle_check_payment,
    SHOW_BOOKED: notification_service.handle_show_booked,
}


class UnknownEventError(KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No handler registered for event '{self.name}'"


async def dispatch_event(name: str, data: Dict[str, Any], db: Optional[Session] = None) -> Any:
    """
    Run the handler for ``name``. Opens (and closes) its own session when
    ``db`` is not given, e.g. from a background task after the request ended.
    """
    handler = EVENT_HANDLERS.get(name)
    if handler is None:
        raise UnknownEventError(name)

    close_db = False
    if db is None:
        db = SessionLocal()
        close_db = True

    try:
        logger.info("Dispatching event %s", name)
        result = handler(db, data or {})
        if inspect.isawaitable(result):
            result = await result
        return result
    finally:
        if close_db:
            db.close()


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: Optional[str], body: bytes, signature: Optional[str]) -> bool:
    """Check an ``X-Webhook-Signature`` header. An unset secret disables checking."""
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, body), signature)
