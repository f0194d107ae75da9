"""
Pydantic schemas for ChainReel API.
"""

from .video import (
    ChainCancelResponse,
    ChainStatusResponse,
    GeneratedVideoListResponse,
    GeneratedVideoResponse,
    VideoGenerateRequest,
    is_chainable_model,
    normalize_aspect_ratio,
)

__all__ = [
    "ChainCancelResponse",
    "ChainStatusResponse",
    "GeneratedVideoListResponse",
    "GeneratedVideoResponse",
    "VideoGenerateRequest",
    "is_chainable_model",
    "normalize_aspect_ratio",
]
