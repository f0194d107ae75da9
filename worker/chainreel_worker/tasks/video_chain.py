"""
Video Chain Task

RQ entry point for chained generation. Wires the real collaborators
(httpx provider client, SQL gateway, ffmpeg frame grab and concat) into the
orchestrator and publishes every progress line to the session's Redis event
channel, where the API streams it to the client.

The API enqueues this task by path and owns its job timeout.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from ..events import (
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_SUCCEEDED,
    RedisEventChannel,
)
from .chain_engine import (
    AspectRatio,
    ChainOrchestrator,
    GenerationRequest,
    HttpProviderClient,
    ProgressReporter,
    SqlVideoRecordGateway,
)
from .chain_engine.provider_client import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

# Storage root from environment
STORAGE_ROOT = Path(os.environ.get("STORAGE_PATH", "/data"))
GENERATED_ROOT = STORAGE_ROOT / "generated"

MISSING_CONFIGURATION_MESSAGE = "API Configuration Missing"


def generate_video_chain(
    session_id: str,
    user_id: str,
    prompt: str,
    model: str,
    total_seconds: int,
    aspect_ratio: str = AspectRatio.LANDSCAPE.value,
    reference_images: Optional[List[bytes]] = None,
    public_base_url: str = "",
    redis=None,
) -> dict:
    """
    RQ task running one chained generation.

    Args:
        session_id: Chain session id, also the event channel key
        user_id: Owner of the produced records
        prompt: Base prompt for every segment
        model: Base model identifier as selected by the client
        total_seconds: Requested total duration
        aspect_ratio: "landscape", "portrait" or "square" (ratio strings accepted)
        reference_images: Decoded JPEG seed images for the first segment
        public_base_url: Origin used to build public video URLs
        redis: Optional Redis connection override

    Returns:
        dict with status, video_url, error and segment counts
    """
    if redis is None:
        from ..queues import get_redis_connection

        redis = get_redis_connection()

    channel = RedisEventChannel(session_id, redis, user_id=user_id)
    reporter = ProgressReporter(
        emit=channel.emit,
        progress_callback=channel.update_progress,
    )

    api_key = os.environ.get("PROVIDER_API_KEY", "")
    if not api_key:
        logger.error(f"Chain {session_id}: PROVIDER_API_KEY is not set")
        reporter.failed(MISSING_CONFIGURATION_MESSAGE)
        channel.finish(STATUS_FAILED, error=MISSING_CONFIGURATION_MESSAGE)
        return {
            "status": "failed",
            "session_id": session_id,
            "video_url": None,
            "error": MISSING_CONFIGURATION_MESSAGE,
        }

    base_url = os.environ.get("PROVIDER_BASE_URL", DEFAULT_BASE_URL)
    public_base_url = public_base_url or os.environ.get("PUBLIC_BASE_URL", "")

    request = GenerationRequest(
        prompt=prompt,
        model=model,
        total_seconds=int(total_seconds),
        aspect_ratio=AspectRatio.parse(aspect_ratio),
        reference_images=list(reference_images or []),
    )
    logger.info(
        f"Starting chain {session_id} for user={user_id}: model={model}, "
        f"seconds={total_seconds}, aspect={request.aspect_ratio.value}, "
        f"seed_images={len(request.reference_images)}"
    )

    with HttpProviderClient(api_key, base_url=base_url) as provider:
        orchestrator = ChainOrchestrator(
            provider=provider,
            gateway=SqlVideoRecordGateway(),
            generated_root=GENERATED_ROOT,
            public_base_url=public_base_url,
            cancel_requested=channel.cancel_requested,
        )
        result = orchestrator.run(request, user_id, session_id, reporter)

    if result.success:
        channel.finish(STATUS_SUCCEEDED, video_url=result.video_url)
    elif channel.cancel_requested():
        channel.finish(STATUS_CANCELLED, error=result.error)
    else:
        channel.finish(STATUS_FAILED, error=result.error)

    return result.to_dict()
