"""
Chain Engine Errors

Every failure the segment loop can hit is a ChainError subclass. The
orchestrator catches them at its boundary and turns them into a single
terminal failure event, so none of these reach the transport layer.
"""

from typing import Optional


class ChainError(Exception):
    """Base class for chain failures. ``str(error)`` is user-facing."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


class ProviderRejected(ChainError):
    """Provider refused a request (bad payload, auth). Never retried."""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            reason = f"Provider rejected request: {body}"
        else:
            reason = f"Provider rejected request ({status_code}): {body}"
        super().__init__(reason)


class ProviderUnreachable(ChainError):
    """Transport-level failure talking to the provider. Polls may be retried."""

    pass


class SegmentTimeout(ChainError):
    """Polling exceeded the attempt bound for a segment."""

    def __init__(self, index: int, attempts: int):
        self.index = index
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for segment {index + 1} after {attempts} status checks"
        )


class SegmentGenerationFailed(ChainError):
    """Provider explicitly reported the segment as failed."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.provider_reason = reason
        super().__init__(f"Segment {index + 1} generation failed: {reason}")


class DownloadFailed(ChainError):
    """Result media could not be fetched."""

    def __init__(self, url: str, status_code: Optional[int] = None, detail: str = ""):
        self.url = url
        self.status_code = status_code
        reason = f"Failed to download {url}"
        if status_code is not None:
            reason += f" (HTTP {status_code})"
        if detail:
            reason += f": {detail}"
        super().__init__(reason)


class FrameExtractionFailed(ChainError):
    """No continuity frame could be taken from a segment."""

    pass


class StitchFailed(ChainError):
    """Concatenating the segments into the final video failed."""

    pass


class ChainCancelled(ChainError):
    """Cancellation was requested between segments."""

    def __init__(self, completed_segments: int):
        self.completed_segments = completed_segments
        super().__init__(f"Generation cancelled after {completed_segments} segment(s)")
