"""
ChainReel services package.

Contains request-side business logic for the API.
"""

from .event_stream import SSE_DONE, SSE_HEADERS, sse_event, stream_chain_events
from .reference_images import (
    InvalidReferenceImage,
    decode_reference_image,
    decode_reference_images,
)

__all__ = [
    "SSE_DONE",
    "SSE_HEADERS",
    "sse_event",
    "stream_chain_events",
    "InvalidReferenceImage",
    "decode_reference_image",
    "decode_reference_images",
]
