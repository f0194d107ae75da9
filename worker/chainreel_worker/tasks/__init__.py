"""
ChainReel Worker Tasks

Tasks:
- generate_video_chain: Generate, stitch and persist a chained video

Chains are enqueued by the API (chainreel_api.core.queue), which sets the
job timeout from the requested duration.
"""

from .video_chain import generate_video_chain

__all__ = [
    "generate_video_chain",
]
