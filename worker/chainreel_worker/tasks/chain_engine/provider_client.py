"""
Provider Client

Talks to the video generation API:

    POST /v1/videos                 multipart submit -> {id, status}
    GET  /v1/videos/{id}            -> {status, progress, url?}
    GET  /v1/videos/{id}/content    -> {url}  (when status omits the url)

Stateless and retry-free: the orchestrator owns polling cadence and
attempt bounds.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

from .errors import DownloadFailed, ProviderRejected, ProviderUnreachable
from .models import PollResult, PollStatus
from .payloads import SubmitPayload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.apiyi.com"

# Provider status strings mapped onto the four states the loop understands
_STATUS_MAP = {
    "queued": PollStatus.QUEUED,
    "pending": PollStatus.QUEUED,
    "submitted": PollStatus.QUEUED,
    "processing": PollStatus.PROCESSING,
    "in_progress": PollStatus.PROCESSING,
    "running": PollStatus.PROCESSING,
    "generating": PollStatus.PROCESSING,
    "completed": PollStatus.COMPLETED,
    "succeeded": PollStatus.COMPLETED,
    "success": PollStatus.COMPLETED,
    "failed": PollStatus.FAILED,
    "error": PollStatus.FAILED,
    "cancelled": PollStatus.FAILED,
    "canceled": PollStatus.FAILED,
}

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class ProviderClient(Protocol):
    """Interface the orchestrator depends on."""

    def submit(self, payload: SubmitPayload) -> str:
        ...

    def poll(self, task_id: str) -> PollResult:
        ...

    def download(self, url: str, dest_path: Path) -> Path:
        ...


def normalize_status(raw: Optional[str]) -> PollStatus:
    """Map a provider status string to PollStatus (unknown -> processing)."""
    if not raw:
        return PollStatus.QUEUED
    return _STATUS_MAP.get(raw.strip().lower(), PollStatus.PROCESSING)


def extract_failure_reason(data: dict) -> str:
    """Pull a human-readable failure reason out of a status body."""
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message") or error.get("code")
        if message:
            return str(message)
    elif error:
        return str(error)
    for key in ("message", "reason"):
        if data.get(key):
            return str(data[key])
    return "Unknown reason"


def _parse_progress(value: Any) -> float:
    try:
        progress = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(max(progress, 0.0), 100.0)


class HttpProviderClient:
    """
    httpx-backed ProviderClient.

    The Authorization header is added per provider call and never sent to
    result URLs, which usually point at a third-party CDN.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        http: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ):
        if not api_key:
            raise ValueError("Provider API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout, follow_redirects=True)

    def __enter__(self) -> "HttpProviderClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @property
    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def submit(self, payload: SubmitPayload) -> str:
        """
        Submit a generation task.

        Returns:
            Provider task identifier

        Raises:
            ProviderRejected: Non-2xx response or no task id in the body
            ProviderUnreachable: Transport failure
        """
        logger.info(
            f"Submitting generation task: model={payload.fields.get('model')}, "
            f"images={len(payload.images)}"
        )
        try:
            response = self._http.post(
                f"{self.base_url}/v1/videos",
                headers=self._auth_headers,
                files=payload.to_multipart(),
            )
        except httpx.HTTPError as e:
            raise ProviderUnreachable(f"Provider unreachable on submit: {e}")

        if not response.is_success:
            logger.error(f"Provider rejected submit {response.status_code}: {response.text}")
            raise ProviderRejected(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError:
            raise ProviderRejected(response.status_code, response.text)

        task_id = body.get("id") if isinstance(body, dict) else None
        if not task_id:
            raise ProviderRejected(response.status_code, f"No task id in response: {response.text}")

        logger.info(f"Provider task created: {task_id}")
        return str(task_id)

    def poll(self, task_id: str) -> PollResult:
        """
        Check a task's status once.

        Raises:
            ProviderUnreachable: Transport failure or non-2xx response
        """
        try:
            response = self._http.get(
                f"{self.base_url}/v1/videos/{task_id}",
                headers=self._auth_headers,
            )
        except httpx.HTTPError as e:
            raise ProviderUnreachable(f"Provider unreachable polling {task_id}: {e}")

        if not response.is_success:
            raise ProviderUnreachable(
                f"Status check for {task_id} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            raise ProviderUnreachable(f"Status check for {task_id} returned invalid JSON")
        if not isinstance(data, dict):
            raise ProviderUnreachable(
                f"Status check for {task_id} returned {type(data).__name__}, expected an object"
            )

        raw_status = str(data.get("status") or "")
        status = normalize_status(raw_status)
        result = PollResult(
            status=status,
            progress_percent=_parse_progress(data.get("progress")),
            raw_status=raw_status,
        )

        if status == PollStatus.COMPLETED:
            result.progress_percent = 100.0
            result.result_url = data.get("url") or data.get("video_url")
            if not result.result_url:
                result.result_url = self._fetch_content_url(task_id)
        elif status == PollStatus.FAILED:
            result.error = extract_failure_reason(data)

        return result

    def _fetch_content_url(self, task_id: str) -> Optional[str]:
        """Fallback lookup when a completed status carries no url."""
        try:
            response = self._http.get(
                f"{self.base_url}/v1/videos/{task_id}/content",
                headers=self._auth_headers,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Content lookup for {task_id} failed: {e}")
            return None
        if not response.is_success:
            logger.warning(f"Content lookup for {task_id} returned HTTP {response.status_code}")
            return None
        try:
            return response.json().get("url")
        except (ValueError, AttributeError):
            return None

    def download(self, url: str, dest_path: Path) -> Path:
        """
        Stream result media to a local file.

        Raises:
            DownloadFailed: Non-2xx response, transport failure, empty body,
                or a local write error
        """
        dest_path = Path(dest_path)
        written = 0
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with self._http.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadFailed(url, response.status_code)
                with open(dest_path, "wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            dest_path.unlink(missing_ok=True)
            raise DownloadFailed(url, detail=str(e))
        except OSError as e:
            if dest_path.is_file():
                dest_path.unlink()
            raise DownloadFailed(url, detail=f"cannot write {dest_path.name}: {e}")
        except DownloadFailed:
            dest_path.unlink(missing_ok=True)
            raise

        if written == 0:
            dest_path.unlink(missing_ok=True)
            raise DownloadFailed(url, detail="empty response body")

        logger.info(f"Downloaded {written} bytes to {dest_path}")
        return dest_path
