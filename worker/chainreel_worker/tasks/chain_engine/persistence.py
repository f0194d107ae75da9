"""
Persistence Gateway

Writes chain records to the ``generated_videos`` table. The orchestrator
only ever inserts records and deletes its own intermediate records by id,
so concurrent runs never touch each other's rows.
"""

import logging
import uuid
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Callable, Iterable, Protocol

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import Session, declarative_base

from ...db import get_db_session
from .models import VideoRecord

logger = logging.getLogger(__name__)

# SQLAlchemy base for worker models
WorkerBase = declarative_base()


class GeneratedVideo(WorkerBase):
    """
    Minimal GeneratedVideo model for worker database operations.

    This mirrors the backend's GeneratedVideo model and must stay
    column-compatible with it.
    """

    __tablename__ = "generated_videos"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    model = Column(String(100), nullable=False)
    video_url = Column(String(1000), nullable=False)
    duration_seconds = Column(Integer, nullable=True)
    is_intermediate = Column(Boolean, default=False, nullable=False, index=True)
    session_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class VideoRecordGateway(Protocol):
    """Durable store for generated-video records."""

    def insert(self, record: VideoRecord) -> str:
        ...

    def delete_many(self, record_ids: Iterable[str]) -> int:
        ...


class SqlVideoRecordGateway:
    """
    SQLAlchemy implementation of VideoRecordGateway.

    Each call uses its own short transaction.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = get_db_session,
    ):
        self._session_factory = session_factory

    def insert(self, record: VideoRecord) -> str:
        """Insert a record and return its generated id."""
        record_id = str(uuid.uuid4())
        with self._session_factory() as db:
            db.add(
                GeneratedVideo(
                    id=record_id,
                    user_id=record.user_id,
                    prompt=record.prompt,
                    model=record.model,
                    video_url=record.video_url,
                    duration_seconds=record.duration_seconds,
                    is_intermediate=record.is_intermediate,
                    session_id=record.session_id,
                    created_at=record.created_at,
                )
            )
            db.commit()
        logger.debug(
            f"Inserted {'intermediate' if record.is_intermediate else 'final'} "
            f"video record {record_id}"
        )
        return record_id

    def delete_many(self, record_ids: Iterable[str]) -> int:
        """Delete records by id. Returns the number of rows removed."""
        ids = list(record_ids)
        if not ids:
            return 0
        with self._session_factory() as db:
            deleted = (
                db.query(GeneratedVideo)
                .filter(GeneratedVideo.id.in_(ids))
                .delete(synchronize_session=False)
            )
            db.commit()
        logger.debug(f"Deleted {deleted} video record(s)")
        return deleted
