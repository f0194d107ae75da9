"""
Redis Event Channel

Carries a chain's progress from the worker to the API process:

- chainreel:events:<session>    list of text lines, in emission order
- chainreel:progress:<session>  hash snapshot (status, percent, message, ...)
- chainreel:cancel:<session>    cooperative cancellation flag

The API owns the client connection and reads these keys; the worker only
writes them. Each write pushes expiry an hour past it.
"""

import logging
from datetime import datetime
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

EVENTS_KEY_PREFIX = "chainreel:events"
PROGRESS_KEY_PREFIX = "chainreel:progress"
CANCEL_KEY_PREFIX = "chainreel:cancel"

# Progress expiry time in seconds (1 hour)
EVENT_EXPIRY_SECONDS = 3600

STATUS_RUNNING = "running"
STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


def events_key(session_id: str) -> str:
    return f"{EVENTS_KEY_PREFIX}:{session_id}"


def progress_key(session_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}:{session_id}"


def cancel_key(session_id: str) -> str:
    return f"{CANCEL_KEY_PREFIX}:{session_id}"


class RedisEventChannel:
    """
    Worker-side writer for one chain session.

    ``emit`` is handed to the ProgressReporter and ``update_progress`` is its
    progress callback. Redis failures are logged and never abort the chain.

    Every snapshot write carries ``user_id`` so a snapshot recreated after
    expiry still names its owner.
    """

    def __init__(self, session_id: str, redis: Redis, user_id: Optional[str] = None):
        self.session_id = session_id
        self.redis = redis
        self.user_id = user_id

    def emit(self, text: str) -> None:
        """Append one event line to the session stream."""
        key = events_key(self.session_id)
        try:
            pipe = self.redis.pipeline()
            pipe.rpush(key, text)
            pipe.expire(key, EVENT_EXPIRY_SECONDS)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"Could not publish event for chain {self.session_id}: {e}")

    def update_progress(self, percent: int, message: str) -> None:
        """Refresh the progress snapshot while the chain is running."""
        self._write_state(
            {
                "status": STATUS_RUNNING,
                "percent": str(percent),
                "message": message,
            }
        )

    def finish(
        self,
        status: str,
        video_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Record the terminal state.

        The API stream stops once it sees a terminal status, so this must be
        written after the last event line.
        """
        state = {"status": status}
        if status == STATUS_SUCCEEDED:
            state["percent"] = "100"
        if video_url:
            state["video_url"] = video_url
        if error:
            state["error"] = error
        self._write_state(state)

    def cancel_requested(self) -> bool:
        """True once the API has flagged the session for cancellation."""
        try:
            return bool(self.redis.exists(cancel_key(self.session_id)))
        except RedisError as e:
            logger.warning(f"Could not read cancel flag for chain {self.session_id}: {e}")
            return False

    def _write_state(self, mapping: dict) -> None:
        key = progress_key(self.session_id)
        mapping = dict(mapping, updated_at=datetime.utcnow().isoformat())
        if self.user_id:
            mapping["user_id"] = self.user_id
        try:
            pipe = self.redis.pipeline()
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, EVENT_EXPIRY_SECONDS)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"Could not update progress for chain {self.session_id}: {e}")
