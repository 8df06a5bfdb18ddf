"""
Mirror identity-provider user events into the local ``users`` table.

Events may be delivered more than once, so creation and update both upsert
and deletion of a missing user is a no-op.
"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from cinebook.database.models import User
from cinebook.utils import validate_user_email

logger = logging.getLogger(__name__)


def _display_name(first_name, last_name) -> str:
    parts = [p.strip() for p in (first_name, last_name) if p and p.strip()]
    return " ".join(parts)


def _user_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    user_id = (data or {}).get("id")
    if not user_id:
        raise ValueError("User event is missing id")

    addresses = data.get("email_addresses") or []
    email = addresses[0].get("email_address") if addresses else None
    if not email:
        raise ValueError(f"User event for {user_id} has no email address")

    return {
        "id": str(user_id),
        "email": validate_user_email(email),
        "name": _display_name(data.get("first_name"), data.get("last_name")),
        "image": data.get("image_url"),
    }


def _upsert_user(db: Session, fields: Dict[str, Any]) -> User:
    user = db.get(User, fields["id"])
    if user is None:
        user = User(**fields)
        db.add(user)
    else:
        for key, value in fields.items():
            setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def sync_user_creation(db: Session, data: Dict[str, Any]) -> User:
    """Handler for ``identity/user.created``."""
    fields = _user_fields(data)
    user = _upsert_user(db, fields)
    logger.info("Synced new user %s (%s)", user.id, user.email)
    return user


def sync_user_update(db: Session, data: Dict[str, Any]) -> User:
    """Handler for ``identity/user.updated``."""
    fields = _user_fields(data)
    user = _upsert_user(db, fields)
    logger.info("Synced updated user %s", user.id)
    return user


def sync_user_deletion(db: Session, data: Dict[str, Any]) -> bool:
    """Handler for ``identity/user.deleted``. Bookings keep their rows."""
    user_id = (data or {}).get("id")
    if not user_id:
        raise ValueError("User event is missing id")

    user = db.get(User, str(user_id))
    if user is None:
        logger.info("User %s already deleted", user_id)
        return False

    db.delete(user)
    db.commit()
    logger.info("Deleted user %s", user_id)
    return True
