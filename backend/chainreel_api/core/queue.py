"""
Chain Job Queue Utilities

Enqueues chained generation jobs onto RQ and manages the per-session Redis
keys shared with the worker:

- chainreel:progress:<session>  hash snapshot (status, percent, message, ...)
- chainreel:events:<session>    list of progress lines, read by the stream
- chainreel:cancel:<session>    cooperative cancellation flag
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from rq import Queue
from rq.job import Job

from .config import get_settings
from .redis import get_queue_connection, get_redis_connection


VIDEO_CHAIN_QUEUE = "chainreel:video_chain"

# The chain task lives in the worker service:
# worker/chainreel_worker/tasks/video_chain.py::generate_video_chain
# We pass the function path as a string to RQ
VIDEO_CHAIN_TASK = "chainreel_worker.tasks.video_chain.generate_video_chain"

PROGRESS_KEY_PREFIX = "chainreel:progress"
EVENTS_KEY_PREFIX = "chainreel:events"
CANCEL_KEY_PREFIX = "chainreel:cancel"

# Retention of a session's keys after its last write (1 hour)
PROGRESS_EXPIRY_SECONDS = 3600

# Shortest segment any provider family produces, and its polling budget
MIN_SEGMENT_SECONDS = 5
SEGMENT_BUDGET_SECONDS = 600 + 120
FINALIZE_BUDGET_SECONDS = 900

STATUS_QUEUED = "queued"
TERMINAL_STATUSES = frozenset({"succeeded", "failed", "cancelled"})


def progress_key(session_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}:{session_id}"


def events_key(session_id: str) -> str:
    return f"{EVENTS_KEY_PREFIX}:{session_id}"


def cancel_key(session_id: str) -> str:
    return f"{CANCEL_KEY_PREFIX}:{session_id}"


def chain_job_timeout(total_seconds: int) -> int:
    """
    RQ job timeout for a chain of ``total_seconds``.

    This is the only job timeout; the worker never enqueues chains itself.
    Budgets every segment as the shortest family segment at its full polling
    allowance, so the bound holds for any model.

    Example:
        >>> chain_job_timeout(20)
        3780
    """
    segments = math.ceil(max(MIN_SEGMENT_SECONDS, total_seconds) / MIN_SEGMENT_SECONDS)
    return segments * SEGMENT_BUDGET_SECONDS + FINALIZE_BUDGET_SECONDS


def chain_state_ttl(total_seconds: int) -> int:
    """
    Expiry of a freshly queued chain's snapshot.

    Covers the longest allowed chain running ahead of it on a worker, then its
    own run. The worker refreshes the expiry on every write once it starts.

    Example:
        >>> chain_state_ttl(5)  # with MAX_CHAIN_SECONDS=120
        23400
    """
    longest = chain_job_timeout(get_settings().max_chain_seconds)
    return longest + chain_job_timeout(total_seconds) + PROGRESS_EXPIRY_SECONDS


def enqueue_video_chain(
    session_id: str,
    user_id: str,
    prompt: str,
    model: str,
    total_seconds: int,
    aspect_ratio: str,
    reference_images: List[bytes],
    public_base_url: str,
) -> Job:
    """
    Enqueue a chained generation job.

    The RQ job id is the session id.

    Returns:
        Job: The enqueued RQ job
    """
    queue = Queue(VIDEO_CHAIN_QUEUE, connection=get_queue_connection())
    return queue.enqueue(
        VIDEO_CHAIN_TASK,
        session_id,
        user_id,
        prompt,
        model,
        total_seconds,
        aspect_ratio,
        reference_images,
        public_base_url,
        job_timeout=chain_job_timeout(total_seconds),
        job_id=session_id,
        result_ttl=PROGRESS_EXPIRY_SECONDS,
    )


# ============================================================================
# Session State
# ============================================================================


def init_chain_state(session_id: str, user_id: str, model: str, total_seconds: int) -> None:
    """
    Create the progress snapshot for a newly accepted chain.

    Written before the job is enqueued so the stream and the status endpoint
    always find an owner.
    """
    redis = get_redis_connection()
    key = progress_key(session_id)

    state = {
        "status": STATUS_QUEUED,
        "user_id": user_id,
        "model": model,
        "seconds": str(total_seconds),
        "percent": "0",
        "message": "Queued",
        "updated_at": datetime.utcnow().isoformat(),
    }

    pipe = redis.pipeline()
    pipe.hset(key, mapping=state)
    pipe.expire(key, chain_state_ttl(total_seconds))
    pipe.execute()


def mark_enqueue_failed(session_id: str, message: str) -> None:
    """Record a terminal failure for a chain that never reached the queue."""
    redis = get_redis_connection()
    pipe = redis.pipeline()
    pipe.rpush(events_key(session_id), f"Error: {message}\n")
    pipe.expire(events_key(session_id), PROGRESS_EXPIRY_SECONDS)
    pipe.hset(progress_key(session_id), mapping={"status": "failed", "error": message})
    pipe.execute()


def get_chain_state(session_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieve the progress snapshot of a chain.

    Returns:
        Dict with status, user_id, percent, message, video_url and error,
        or None if the session is unknown or expired
    """
    redis = get_redis_connection()
    data = redis.hgetall(progress_key(session_id))

    if not data:
        return None

    return {
        "session_id": session_id,
        "status": data.get("status", STATUS_QUEUED),
        "user_id": data.get("user_id", ""),
        "percent": int(float(data.get("percent", 0))),
        "message": data.get("message", ""),
        "video_url": data.get("video_url") or None,
        "error": data.get("error") or None,
        "updated_at": data.get("updated_at", ""),
    }


def request_cancel(session_id: str) -> None:
    """
    Flag a chain for cooperative cancellation.

    The worker checks the flag between segments; a segment that is already
    generating runs to completion first.
    """
    redis = get_redis_connection()
    redis.set(cancel_key(session_id), "1", ex=PROGRESS_EXPIRY_SECONDS)
