# src/floodwatch/models.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, UniqueConstraint, Index
from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(Base):
    """One JSON document of the key-value store, addressed by (bucket, key)."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    bucket = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)

    # stations -> StationRecord, history -> [{ts, val}], weather -> cache entry,
    # notify -> {message, timestamp}
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("bucket", "key", name="uq_documents_bucket_key"),
        Index("ix_documents_bucket_key", "bucket", "key"),
    )
