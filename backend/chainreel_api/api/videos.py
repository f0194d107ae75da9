"""
Videos API endpoints for ChainReel.

Starts chained generation jobs and streams their progress, exposes chain
status and cancellation, and lists a user's finished videos. All endpoints
require authentication; chain endpoints verify session ownership.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chainreel_api.api.deps import get_current_user_id, get_db, get_event_redis
from chainreel_api.core.config import get_settings
from chainreel_api.core.queue import (
    TERMINAL_STATUSES,
    enqueue_video_chain,
    get_chain_state,
    init_chain_state,
    mark_enqueue_failed,
    request_cancel,
)
from chainreel_api.core.storage import (
    get_generated_root,
    resolve_public_base_url,
    validate_session_id,
)
from chainreel_api.models.video import GeneratedVideo
from chainreel_api.schemas.video import (
    ChainCancelResponse,
    ChainStatusResponse,
    GeneratedVideoListResponse,
    GeneratedVideoResponse,
    VideoGenerateRequest,
    is_chainable_model,
)
from chainreel_api.services.event_stream import SSE_HEADERS, stream_chain_events
from chainreel_api.services.reference_images import (
    InvalidReferenceImage,
    decode_reference_images,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_HEADER = "X-Chain-Session"
CONFIGURATION_MISSING = "API Configuration Missing"


def _get_owned_chain(session_id: str, user_id: str) -> dict:
    """
    Load a chain's progress state, verifying ownership.

    Raises:
        HTTPException 404: If the session is unknown, expired or not owned
    """
    not_found = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": "Chain session not found"},
    )
    if not validate_session_id(session_id):
        raise not_found

    state = get_chain_state(session_id)
    if state is None or state["user_id"] != user_id:
        raise not_found
    return state


def _event_stream_response(redis: Redis, session_id: str, offset: int = 0) -> StreamingResponse:
    settings = get_settings()
    return StreamingResponse(
        stream_chain_events(
            redis,
            session_id,
            offset=offset,
            poll_interval=settings.stream_poll_interval_seconds,
            idle_timeout=settings.stream_idle_timeout_seconds,
        ),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, SESSION_HEADER: session_id},
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/generate",
    name="generate_video",
    summary="Generate a chained video",
    description=(
        "Queue a chained generation and stream its progress as server-sent events. "
        "The stream ends with a DONE or Error line followed by [DONE]."
    ),
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "Progress stream"},
        400: {"description": "Unsupported model or undecodable seed image"},
        401: {"description": "Missing or invalid token"},
        500: {"description": "Provider not configured or queue unavailable"},
    },
)
async def generate_video(
    body: VideoGenerateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    redis: Redis = Depends(get_event_redis),
):
    """
    Start a chained generation.

    Disconnecting from the stream does not cancel the chain; progress can be
    resumed through the events endpoint using the X-Chain-Session header.
    """
    settings = get_settings()

    if not settings.provider_api_key:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": CONFIGURATION_MISSING},
        )

    if not is_chainable_model(body.model):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "unsupported_model",
                "message": f"Model '{body.model}' does not support chained generation",
            },
        )

    try:
        reference_images = decode_reference_images(body.seed_image_inputs)
    except InvalidReferenceImage as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_image", "message": str(e)},
        )

    session_id = str(uuid4())
    public_base_url = resolve_public_base_url(request, settings.public_base_url)
    get_generated_root()

    try:
        init_chain_state(session_id, user_id, body.model, body.seconds)
        job = enqueue_video_chain(
            session_id=session_id,
            user_id=user_id,
            prompt=body.prompt,
            model=body.model,
            total_seconds=body.seconds,
            aspect_ratio=body.aspect_ratio,
            reference_images=reference_images,
            public_base_url=public_base_url,
        )
    except RedisError as e:
        logger.error(f"Failed to enqueue chain {session_id}: {e}")
        try:
            mark_enqueue_failed(session_id, "Failed to enqueue chain job")
        except RedisError:
            logger.warning(f"Could not record enqueue failure for chain {session_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "internal_error", "message": "Failed to enqueue chain job"},
        )

    logger.info(
        f"Queued chain {session_id} (job {job.id}) for user={user_id}: "
        f"model={body.model}, seconds={body.seconds}, aspect={body.aspect_ratio}, "
        f"seed_images={len(reference_images)}"
    )
    return _event_stream_response(redis, session_id)


@router.get(
    "/chains/{session_id}",
    response_model=ChainStatusResponse,
    name="get_chain_status",
    summary="Get chain status",
)
async def get_chain_status(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
) -> ChainStatusResponse:
    """Progress snapshot of a chain owned by the caller."""
    state = _get_owned_chain(session_id, user_id)
    return ChainStatusResponse(
        session_id=session_id,
        status=state["status"],
        percent=min(max(state["percent"], 0), 100),
        message=state["message"] or None,
        video_url=state["video_url"],
        error=state["error"],
    )


@router.get(
    "/chains/{session_id}/events",
    name="stream_chain_events",
    summary="Resume a chain's progress stream",
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def get_chain_events(
    session_id: str,
    offset: int = Query(0, ge=0, description="Index of the first event to send"),
    user_id: str = Depends(get_current_user_id),
    redis: Redis = Depends(get_event_redis),
):
    """Replay a chain's events from ``offset`` and follow it to the end."""
    _get_owned_chain(session_id, user_id)
    return _event_stream_response(redis, session_id, offset=offset)


@router.post(
    "/chains/{session_id}/cancel",
    response_model=ChainCancelResponse,
    status_code=status.HTTP_202_ACCEPTED,
    name="cancel_chain",
    summary="Cancel a running chain",
    responses={409: {"description": "Chain already finished"}},
)
async def cancel_chain(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
) -> ChainCancelResponse:
    """
    Request cooperative cancellation.

    The chain stops before its next segment; the segment being generated is
    not interrupted.
    """
    state = _get_owned_chain(session_id, user_id)
    if state["status"] in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "chain_finished",
                "message": f"Chain already {state['status']}",
            },
        )

    request_cancel(session_id)
    logger.info(f"Cancellation requested for chain {session_id} by user={user_id}")
    return ChainCancelResponse(session_id=session_id)


@router.get(
    "",
    response_model=GeneratedVideoListResponse,
    name="list_videos",
    summary="List finished videos",
)
async def list_videos(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> GeneratedVideoListResponse:
    """The caller's final videos, newest first. Intermediate segments are never listed."""
    filters = (
        GeneratedVideo.user_id == user_id,
        GeneratedVideo.is_intermediate.is_(False),
    )

    total = await db.scalar(select(func.count()).select_from(GeneratedVideo).where(*filters))
    result = await db.execute(
        select(GeneratedVideo)
        .where(*filters)
        .order_by(GeneratedVideo.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    videos = result.scalars().all()

    return GeneratedVideoListResponse(
        videos=[GeneratedVideoResponse.model_validate(v) for v in videos],
        total=total or 0,
    )
