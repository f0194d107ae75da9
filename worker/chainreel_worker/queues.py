"""
ChainReel Queue Definitions

A single queue carries chained generation jobs:
- chainreel:video_chain - long-running, provider-bound chain jobs

Chain jobs spend most of their time waiting on the provider, so scaling is
done by running more worker processes on the same queue.
"""

import os
from redis import Redis
from typing import Optional

# Redis connection singleton
_redis_connection: Optional[Redis] = None

VIDEO_CHAIN_QUEUE = "chainreel:video_chain"


def get_redis_connection() -> Redis:
    """
    Get or create a Redis connection from environment variable REDIS_URL.

    Returns:
        Redis: A Redis connection instance
    """
    global _redis_connection

    if _redis_connection is None:
        redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        _redis_connection = Redis.from_url(redis_url, decode_responses=False)

    return _redis_connection


# All queues for worker initialization
ALL_QUEUES = [VIDEO_CHAIN_QUEUE]
