"""
src/floodwatch/crud.py

Key-value helpers over the documents table.

The rest of the service treats storage as a plain JSON document store:

- get_json: value for (bucket, key), or a default when absent
- set_json: insert or replace the value for (bucket, key)
- delete_key: remove (bucket, key); returns whether a row existed
- list_documents: every (key, value) pair in a bucket, ordered by key

There is no compare-and-swap: concurrent writers to one key are last-write-wins.
Database failures are re-raised as StoreError after rolling the session back.
"""

from __future__ import annotations  # forward refs

from typing import Any, Dict, List, Optional, Tuple  # typing

from sqlalchemy import select  # query builder
from sqlalchemy.exc import SQLAlchemyError  # base SQLAlchemy exception type
from sqlalchemy.orm import Session  # DB session

from .errors import StoreError  # surfaced as HTTP 500
from .models import Document  # ORM model

STATIONS = "stations"  # per-station StationRecord
HISTORY = "history"  # per-station rolling readings
WEATHER = "weather"  # per-station weather cache
NOTIFY = "notify"  # per-station pending notification


def _find(db: Session, bucket: str, key: str) -> Optional[Document]:
    stmt = select(Document).where(Document.bucket == bucket, Document.key == key)  # natural key lookup
    return db.execute(stmt).scalar_one_or_none()  # at most one row per (bucket, key)


def get_json(db: Session, bucket: str, key: str, default: Any = None) -> Any:
    """
    Return the stored value, or `default` when no document exists.
    """
    try:
        doc = _find(db, bucket, key)  # load row
    except SQLAlchemyError as e:
        db.rollback()  # leave the session usable
        raise StoreError(f"read {bucket}/{key} failed: {e}") from e
    return default if doc is None else doc.value  # absent -> default


def set_json(db: Session, bucket: str, key: str, value: Any) -> None:
    """
    Insert or replace the value stored under (bucket, key).
    """
    try:
        doc = _find(db, bucket, key)  # existing row, if any
        if doc is None:
            db.add(Document(bucket=bucket, key=key, value=value))  # first write
        else:
            doc.value = value  # replace whole document
        db.commit()  # persist immediately, one document per write
    except SQLAlchemyError as e:
        db.rollback()  # discard the failed write
        raise StoreError(f"write {bucket}/{key} failed: {e}") from e


def delete_key(db: Session, bucket: str, key: str) -> bool:
    """
    Delete (bucket, key). Returns True if a document was removed.
    """
    try:
        doc = _find(db, bucket, key)  # existing row, if any
        if doc is None:
            return False  # nothing to delete
        db.delete(doc)  # mark for deletion
        db.commit()  # persist
        return True
    except SQLAlchemyError as e:
        db.rollback()  # discard the failed delete
        raise StoreError(f"delete {bucket}/{key} failed: {e}") from e


def list_documents(db: Session, bucket: str) -> List[Tuple[str, Dict[str, Any]]]:
    """
    Fetch all (key, value) pairs of a bucket, ordered by key.
    """
    stmt = select(Document.key, Document.value).where(Document.bucket == bucket).order_by(Document.key.asc())  # stable ordering
    try:
        rows = db.execute(stmt).all()  # fetch all rows
    except SQLAlchemyError as e:
        db.rollback()  # leave the session usable
        raise StoreError(f"list {bucket} failed: {e}") from e
    return [(r.key, r.value) for r in rows]  # plain tuples
