# cinebook/routers/event_routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from cinebook.core.config import settings
from cinebook.core.errors import TransientStorageError
from cinebook.database import schemas
from cinebook.database.database import get_db
from cinebook.events import UnknownEventError, dispatch_event, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=schemas.EventAccepted)
async def ingest_event(
    request: Request,
    db: Session = Depends(get_db),
    x_webhook_signature: Optional[str] = Header(None),
):
    """
    Receive a named event from the identity provider or the booking flow.
    Producers may deliver the same event more than once.
    """
    body = await request.body()
    if not verify_signature(settings.EVENTS_WEBHOOK_SECRET, body, x_webhook_signature):
        logger.warning("Event rejected: bad or missing signature")
        raise HTTPException(status_code=400, detail="Webhook signature verification failed")

    try:
        envelope = schemas.EventEnvelope.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid event payload: {e.errors()}")

    try:
        await dispatch_event(envelope.name, envelope.data, db=db)
    except UnknownEventError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError as e:
        # Producer retries on 5xx
        logger.warning("Event %s failed transiently: %s", envelope.name, e)
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    return schemas.EventAccepted(event=envelope.name)
