"""
ChainReel Worker Package

RQ-based worker for chained video generation:
- Segment generation against the video provider
- Last-frame continuity between segments
- Lossless stitching and record persistence
"""

from .queues import (
    get_redis_connection,
    ALL_QUEUES,
    VIDEO_CHAIN_QUEUE,
)

from .tasks import generate_video_chain

__all__ = [
    # Queues
    "get_redis_connection",
    "ALL_QUEUES",
    "VIDEO_CHAIN_QUEUE",
    # Tasks
    "generate_video_chain",
]
