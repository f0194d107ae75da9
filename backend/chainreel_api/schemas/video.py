"""
Pydantic schemas for the Videos API.

Includes the chained generation request, chain status and cancellation
responses, and the video listing.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from chainreel_api.core.config import get_settings


# Model families that support chained generation
CHAINABLE_MODEL_PREFIXES = ("sora", "veo")

ASPECT_RATIO_ALIASES = {
    "16:9": "landscape",
    "9:16": "portrait",
    "1:1": "square",
}
ASPECT_RATIOS = {"landscape", "portrait", "square"}


def is_chainable_model(model: str) -> bool:
    """
    Whether a model identifier belongs to a chainable provider family.

    Example:
        >>> is_chainable_model("veo-3.1-fast")
        True
        >>> is_chainable_model("dall-e-3")
        False
    """
    return model.strip().lower().startswith(CHAINABLE_MODEL_PREFIXES)


def normalize_aspect_ratio(value: Optional[str]) -> str:
    """
    Map ratio strings onto orientation names.

    Unknown or empty values fall back to landscape.

    Example:
        >>> normalize_aspect_ratio("9:16")
        'portrait'
    """
    if not value:
        return "landscape"
    normalized = value.strip().lower()
    normalized = ASPECT_RATIO_ALIASES.get(normalized, normalized)
    return normalized if normalized in ASPECT_RATIOS else "landscape"


# --- Request Schemas ---


class VideoGenerateRequest(BaseModel):
    """Request to generate a chained video."""

    prompt: str = Field(..., min_length=1, description="Text prompt for every segment")
    model: str = Field(..., min_length=1, description="Base model identifier, e.g. 'sora-2' or 'veo-3.1'")
    seconds: int = Field(..., ge=1, description="Requested total duration in seconds")
    aspect_ratio: Optional[str] = Field(
        None,
        validate_default=True,
        description="'landscape', 'portrait', 'square' or '16:9', '9:16', '1:1' (default landscape)",
    )
    input_image: Optional[Any] = Field(
        None, description="Seed image as a base64 string or data URL"
    )
    input_images: Optional[List[Any]] = Field(
        None, description="Seed images; takes precedence over input_image"
    )

    @field_validator("seconds")
    @classmethod
    def seconds_within_limit(cls, value: int) -> int:
        limit = get_settings().max_chain_seconds
        if value > limit:
            raise ValueError(f"seconds must be at most {limit}")
        return value

    @field_validator("aspect_ratio")
    @classmethod
    def normalize_ratio(cls, value: Optional[str]) -> str:
        return normalize_aspect_ratio(value)

    @property
    def seed_image_inputs(self) -> List[Any]:
        """Seed image entries in submission order."""
        if self.input_images:
            return list(self.input_images)
        if self.input_image:
            return [self.input_image]
        return []


# --- Response Schemas ---


class ChainStatusResponse(BaseModel):
    """Progress snapshot of a chained generation."""

    session_id: str = Field(..., description="Chain session UUID")
    status: Literal["queued", "running", "succeeded", "failed", "cancelled"] = Field(
        ..., description="Current chain status"
    )
    percent: int = Field(0, ge=0, le=100, description="Chain-wide progress percentage")
    message: Optional[str] = Field(None, description="Latest progress line")
    video_url: Optional[str] = Field(None, description="Final video URL when succeeded")
    error: Optional[str] = Field(None, description="Failure reason when failed or cancelled")


class ChainCancelResponse(BaseModel):
    """Response when a cancellation request is accepted (202 Accepted)."""

    session_id: str
    status: Literal["cancelling"] = "cancelling"
    message: str = "Cancellation requested; the chain stops before its next segment"


class GeneratedVideoResponse(BaseModel):
    """A stored video."""

    id: str
    prompt: str
    model: str
    video_url: str
    duration_seconds: Optional[int] = None
    session_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class GeneratedVideoListResponse(BaseModel):
    """A user's finished videos, newest first."""

    videos: List[GeneratedVideoResponse]
    total: int
