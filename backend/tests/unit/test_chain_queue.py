"""
Unit tests for chain queue helpers.

Tests:
- Job timeout scales with requested duration
- Queued state outlives the longest chain ahead of it
- Session state is initialized, read and cancelled through Redis
- Enqueue passes the task path and timeout to RQ
"""

from unittest.mock import MagicMock, patch

from chainreel_api.core.config import get_settings
from chainreel_api.core.queue import (
    PROGRESS_EXPIRY_SECONDS,
    VIDEO_CHAIN_QUEUE,
    VIDEO_CHAIN_TASK,
    chain_job_timeout,
    chain_state_ttl,
    enqueue_video_chain,
    get_chain_state,
    init_chain_state,
    mark_enqueue_failed,
    request_cancel,
)

SESSION = "11111111-2222-4333-8444-555555555555"


class TestChainJobTimeout:
    """Tests for duration-derived job timeouts."""

    def test_minimum_duration_budgeted_as_one_segment(self):
        assert chain_job_timeout(1) == chain_job_timeout(5)

    def test_grows_with_duration(self):
        assert chain_job_timeout(120) > chain_job_timeout(20) > chain_job_timeout(5)

    def test_covers_full_polling_budget(self):
        # 4 segments of 5s, each allowed 120 polls at 5s
        assert chain_job_timeout(20) >= 4 * 600

    def test_state_outlives_longest_chain_queued_ahead(self):
        longest = chain_job_timeout(get_settings().max_chain_seconds)

        assert chain_state_ttl(5) >= longest + chain_job_timeout(5) + PROGRESS_EXPIRY_SECONDS
        assert chain_state_ttl(5) > 18000


class TestChainState:
    """Tests for the progress snapshot in Redis."""

    def test_init_writes_owner_and_expiry(self, mock_redis: MagicMock):
        init_chain_state(SESSION, "user_1", "sora-2", 32)

        pipe = mock_redis.pipeline.return_value
        key, = pipe.hset.call_args.args
        mapping = pipe.hset.call_args.kwargs["mapping"]
        assert key == f"chainreel:progress:{SESSION}"
        assert mapping["status"] == "queued"
        assert mapping["user_id"] == "user_1"
        assert mapping["seconds"] == "32"
        pipe.expire.assert_called_once_with(key, chain_state_ttl(32))
        pipe.execute.assert_called_once()

    def test_get_missing_state(self, mock_redis: MagicMock):
        mock_redis.hgetall.return_value = {}
        assert get_chain_state(SESSION) is None

    def test_get_parses_snapshot(self, mock_redis: MagicMock):
        mock_redis.hgetall.return_value = {
            "status": "running",
            "user_id": "user_1",
            "percent": "41",
            "message": "Status: processing (41.7%)",
        }

        state = get_chain_state(SESSION)

        assert state["status"] == "running"
        assert state["percent"] == 41
        assert state["video_url"] is None
        assert state["error"] is None

    def test_request_cancel_sets_expiring_flag(self, mock_redis: MagicMock):
        request_cancel(SESSION)
        mock_redis.set.assert_called_once_with(
            f"chainreel:cancel:{SESSION}", "1", ex=PROGRESS_EXPIRY_SECONDS
        )

    def test_enqueue_failure_recorded_as_event(self, mock_redis: MagicMock):
        mark_enqueue_failed(SESSION, "Failed to enqueue chain job")

        pipe = mock_redis.pipeline.return_value
        pipe.rpush.assert_called_once_with(
            f"chainreel:events:{SESSION}", "Error: Failed to enqueue chain job\n"
        )
        assert pipe.hset.call_args.kwargs["mapping"]["status"] == "failed"


class TestEnqueue:
    """Tests for RQ enqueueing."""

    def test_enqueue_uses_task_path_and_session_job_id(self):
        with patch("chainreel_api.core.queue.get_queue_connection") as mock_conn, \
                patch("chainreel_api.core.queue.Queue") as mock_queue_class:
            queue = mock_queue_class.return_value

            enqueue_video_chain(
                session_id=SESSION,
                user_id="user_1",
                prompt="a fox",
                model="veo-3.1",
                total_seconds=20,
                aspect_ratio="landscape",
                reference_images=[b"jpeg"],
                public_base_url="https://videos.example.com",
            )

        mock_queue_class.assert_called_once_with(VIDEO_CHAIN_QUEUE, connection=mock_conn.return_value)
        args = queue.enqueue.call_args.args
        kwargs = queue.enqueue.call_args.kwargs
        assert args[0] == VIDEO_CHAIN_TASK
        assert args[1:] == (
            SESSION, "user_1", "a fox", "veo-3.1", 20, "landscape", [b"jpeg"],
            "https://videos.example.com",
        )
        assert kwargs["job_id"] == SESSION
        assert kwargs["job_timeout"] == chain_job_timeout(20)
