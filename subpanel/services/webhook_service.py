from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..logging_config import get_logger
from ..models import WebhookEvent

logger = get_logger(__name__)

RECEIVED = "received"
PROCESSED = "processed"
IGNORED = "ignored"
FAILED = "failed"

# Never persist these headers
_REDACTED_HEADERS = {"authorization", "cookie"}


def log_webhook(
    provider: str,
    headers: Dict[str, Any],
    payload: Dict[str, Any],
    channel_uuid: Optional[str] = None,
    db: Optional[Session] = None,
) -> Optional[WebhookEvent]:
    """
    Log a raw webhook event to the database.
    Returns the WebhookEvent, or None when the write failed.
    """
    close_db = False
    if db is None:
        db = SessionLocal()
        close_db = True

    try:
        event = WebhookEvent(
            provider=provider,
            channel_uuid=channel_uuid,
            headers={k: v for k, v in headers.items() if k.lower() not in _REDACTED_HEADERS},
            payload=payload,
            status=RECEIVED,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("webhook_log_failed", provider=provider, error=str(e))
        return None
    finally:
        if close_db:
            db.close()


def update_webhook_status(
    event_id: Optional[int],
    status: str,
    error: Optional[str] = None,
    db: Optional[Session] = None,
) -> None:
    if event_id is None:
        return

    close_db = False
    if db is None:
        db = SessionLocal()
        close_db = True

    try:
        event = db.query(WebhookEvent).filter(WebhookEvent.id == event_id).first()
        if event:
            event.status = status
            event.processed_at = datetime.now(timezone.utc)
            if error:
                event.error = error
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("webhook_status_update_failed", event_id=event_id, error=str(e))
    finally:
        if close_db:
            db.close()
