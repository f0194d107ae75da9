"""
GeneratedVideo model for ChainReel.

One row per stored video. Chained generation writes an intermediate row per
segment while it runs and a final row once the stitched video exists; the
intermediate rows are removed after the final row is committed.
"""

from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chainreel_api.core.database import Base


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class GeneratedVideo(Base):
    """
    GeneratedVideo model representing a video owned by a user.

    The worker writes this table through a column-compatible mirror model.
    """

    __tablename__ = "generated_videos"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        doc="UUID primary key"
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        doc="Owner identity from the access token"
    )

    prompt: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Prompt used for generation (segment prompt for intermediates)"
    )
    model: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Base model identifier selected by the client"
    )
    video_url: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        doc="Public URL of the video file"
    )
    duration_seconds: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Requested total duration (final videos only)"
    )

    # Chain bookkeeping
    is_intermediate: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
        doc="True for per-segment rows written during a chain"
    )
    session_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        doc="Chain session that produced this row"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
        doc="Row creation timestamp"
    )

    def __repr__(self) -> str:
        kind = "intermediate" if self.is_intermediate else "final"
        return f"<GeneratedVideo(id={self.id}, user_id={self.user_id}, {kind})>"
