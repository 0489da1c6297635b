# src/floodwatch/mailbox.py
"""
Single-slot notification mailbox per station.

put() overwrites any unread message; take_if_present() returns the message
and deletes it, so each message is delivered at most once. Two racing
readers may both miss it or one may see it, never both.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from . import crud
from .errors import ValidationError

logger = logging.getLogger(__name__)


def put(db: Session, station_key: str, message: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    if not message or not message.strip():
        raise ValidationError("message is required")
    now = now or datetime.now(timezone.utc)
    pending = {"message": message, "timestamp": now.isoformat()}
    crud.set_json(db, crud.NOTIFY, station_key, pending)
    logger.info("[notify] queued message for %s", station_key)
    return pending


def take_if_present(db: Session, station_key: str) -> Optional[Dict[str, Any]]:
    pending = crud.get_json(db, crud.NOTIFY, station_key)
    if not pending:
        return None
    if not crud.delete_key(db, crud.NOTIFY, station_key):
        # another reader consumed it between our read and delete
        return None
    logger.info("[notify] delivered message to %s", station_key)
    return pending
