"""
Chain Engine Data Types

Plain dataclasses and enums shared by the segment loop and its leaf
components. Nothing here performs I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


class AspectRatio(str, Enum):
    """Requested output orientation."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    SQUARE = "square"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AspectRatio":
        """
        Accept either the enum value or a ratio string.

        Unknown or empty values fall back to landscape, the default
        orientation clients have always received.

        Example:
            >>> AspectRatio.parse("9:16")
            <AspectRatio.PORTRAIT: 'portrait'>
        """
        if not value:
            return cls.LANDSCAPE
        normalized = value.strip().lower()
        aliases = {
            "16:9": cls.LANDSCAPE,
            "9:16": cls.PORTRAIT,
            "1:1": cls.SQUARE,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            return cls.LANDSCAPE


class ProviderFamily(str, Enum):
    """Provider families that can be chained."""

    SORA = "sora"
    VEO = "veo"


class PollStatus(str, Enum):
    """Normalized provider task status."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SegmentStatus(str, Enum):
    """Lifecycle of one segment: submitted -> polling -> completed | failed."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ResolvedModel:
    """
    Concrete provider model plus the capability it implies.

    Attributes:
        model: Model string sent to the provider
        family: Provider family, None for unknown identifiers
        supports_reference_image: Whether the model accepts reference images
    """

    model: str
    family: Optional[ProviderFamily]
    supports_reference_image: bool


@dataclass
class GenerationRequest:
    """
    Input for one orchestration run.

    Duration and aspect ratio are advisory: the orchestrator translates them
    into provider-legal values.
    """

    prompt: str
    model: str
    total_seconds: int
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    reference_images: List[bytes] = field(default_factory=list)

    @property
    def fast_requested(self) -> bool:
        """Fast mode is encoded in the model identifier."""
        return "fast" in self.model.lower()


@dataclass
class PollResult:
    """Outcome of a single status check."""

    status: PollStatus
    progress_percent: float = 0.0
    result_url: Optional[str] = None
    error: Optional[str] = None
    raw_status: str = ""


@dataclass
class Segment:
    """
    One link in the chain, owned by the orchestrator for its lifetime.

    ``local_path`` is only set once the segment has completed and its media
    has been downloaded.
    """

    index: int
    model: str
    prompt: str
    reference_images: List[bytes] = field(default_factory=list)
    task_id: Optional[str] = None
    status: SegmentStatus = SegmentStatus.PENDING
    local_path: Optional[Path] = None
    poll_attempts: int = 0

    def mark_submitted(self, task_id: str) -> None:
        self.task_id = task_id
        self.status = SegmentStatus.SUBMITTED

    def mark_polling(self) -> None:
        self.status = SegmentStatus.POLLING

    def mark_completed(self, local_path: Path) -> None:
        self.local_path = local_path
        self.status = SegmentStatus.COMPLETED

    def mark_failed(self) -> None:
        self.status = SegmentStatus.FAILED


@dataclass
class VideoRecord:
    """Row written to the generated videos collection."""

    user_id: str
    prompt: str
    model: str
    video_url: str
    is_intermediate: bool
    session_id: Optional[str] = None
    duration_seconds: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ChainResult:
    """Terminal outcome of a run. Exactly one of video_url / error is set."""

    success: bool
    session_id: str
    video_url: Optional[str] = None
    error: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)
    iteration_count: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for the RQ job result."""
        return {
            "status": "complete" if self.success else "failed",
            "session_id": self.session_id,
            "video_url": self.video_url,
            "error": self.error,
            "iteration_count": self.iteration_count,
            "completed_segments": sum(
                1 for s in self.segments if s.status == SegmentStatus.COMPLETED
            ),
        }
