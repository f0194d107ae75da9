# Core modules for ChainReel backend
from .config import Settings, get_settings, settings
from .database import Base, get_async_session, async_engine, AsyncSessionLocal
from .redis import (
    get_redis_connection,
    get_queue_connection,
    get_async_redis,
    check_redis_health,
    RedisHealthStatus,
)
from .queue import (
    enqueue_video_chain,
    init_chain_state,
    get_chain_state,
    request_cancel,
    chain_job_timeout,
    VIDEO_CHAIN_QUEUE,
)
from .security import (
    create_access_token,
    decode_token,
    get_current_user_id,
)
from .storage import (
    get_storage_root,
    get_generated_root,
    validate_session_id,
    resolve_public_base_url,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "settings",
    # Database
    "Base",
    "get_async_session",
    "async_engine",
    "AsyncSessionLocal",
    # Redis
    "get_redis_connection",
    "get_queue_connection",
    "get_async_redis",
    "check_redis_health",
    "RedisHealthStatus",
    # Queue
    "enqueue_video_chain",
    "init_chain_state",
    "get_chain_state",
    "request_cancel",
    "chain_job_timeout",
    "VIDEO_CHAIN_QUEUE",
    # Security
    "create_access_token",
    "decode_token",
    "get_current_user_id",
    # Storage
    "get_storage_root",
    "get_generated_root",
    "validate_session_id",
    "resolve_public_base_url",
]
