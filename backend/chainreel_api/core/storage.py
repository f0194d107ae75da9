"""
Generated Media Storage

The worker writes chained videos under ``{STORAGE_ROOT}/generated``; the API
serves that directory at ``/generated`` and hands out absolute URLs to it:

    {STORAGE_ROOT}/generated/chain_<hex>.mp4   ->  {origin}/generated/chain_<hex>.mp4
    {STORAGE_ROOT}/generated/temp_<session>/   (worker scratch, removed after each run)
"""

import os
from pathlib import Path
from typing import Optional
from uuid import UUID

from fastapi import Request

from .config import get_settings


GENERATED_DIRNAME = "generated"


def get_storage_root() -> Path:
    """
    Get the storage root path from configuration.

    Raises:
        ValueError: If storage path is not configured
    """
    storage_path = get_settings().storage_path

    if not storage_path:
        raise ValueError("STORAGE_PATH environment variable not set")

    return Path(storage_path).resolve()


def _mkdir_world_writable(path: Path) -> None:
    """
    Create a directory (and all parents) with world-writable permissions (0o777).
    Required for multi-container setups where the API creates dirs and the worker writes to them.
    """
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o777)


def get_generated_root(create: bool = True) -> Path:
    """
    Directory holding generated videos and per-chain scratch space.

    Args:
        create: Create the directory if missing
    """
    root = get_storage_root() / GENERATED_DIRNAME
    if create:
        _mkdir_world_writable(root)
    return root


def validate_session_id(session_id: str) -> bool:
    """
    Validate that a chain session ID is a valid UUID.

    Session ids name scratch directories, so anything else is rejected.

    Example:
        >>> validate_session_id("550e8400-e29b-41d4-a716-446655440000")
        True
        >>> validate_session_id("../malicious")
        False
    """
    try:
        UUID(session_id)
        return True
    except (ValueError, TypeError):
        return False


def resolve_public_base_url(request: Request, configured: Optional[str] = None) -> str:
    """
    Origin used in public video URLs.

    A configured PUBLIC_BASE_URL wins; otherwise the origin the client used
    to reach this request, honouring X-Forwarded-Proto/Host from a proxy.

    Example:
        >>> resolve_public_base_url(request)   # GET http://localhost:8000/api/videos
        'http://localhost:8000'
    """
    if configured:
        return configured.rstrip("/")

    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}"
