"""
Progress Reporter

Formats orchestrator events as text lines for the client stream:

    Status: processing (41.7%)
    DONE: [Download Video](https://host/generated/chain_ab12cd34.mp4)
    Error: Segment 2 generation failed: content policy

The wire encoding belongs to whoever supplies ``emit``. Lines are emitted
immediately and in order.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Status lines never claim completion; only the success marker reports 100.
MAX_STATUS_PERCENT = 99.9


def global_percent(index: int, segment_percent: float, iteration_count: int) -> float:
    """
    Chain-wide progress for a tick inside segment ``index``.

    Example:
        >>> global_percent(1, 50, 3)
        50.0
    """
    if iteration_count <= 0:
        return 0.0
    return ((index * 100) + segment_percent) / iteration_count


class ProgressReporter:
    """
    Turns chain events into text and hands them to ``emit``.

    Args:
        emit: Receives one newline-terminated line per event
        progress_callback: Optional ``(percent, message)`` hook, mirroring
            each event into a progress snapshot
    """

    def __init__(
        self,
        emit: Callable[[str], None],
        progress_callback: Optional[Callable[[int, str], None]] = None,
    ):
        self._emit = emit
        self._progress_callback = progress_callback
        self.percent = 0.0
        self.finished = False

    def _send(self, line: str) -> None:
        if self.finished:
            logger.warning(f"Dropping event after terminal marker: {line!r}")
            return
        self._emit(line + "\n")
        if self._progress_callback is not None:
            self._progress_callback(int(self.percent), line)

    def message(self, text: str) -> None:
        """Free-text line."""
        self._send(text)

    def status(self, state: str, percent: float) -> None:
        """
        Status line with chain-wide percent.

        The reported value never goes backwards and stays below 100 until
        ``succeeded`` is called.
        """
        clamped = min(max(percent, self.percent), MAX_STATUS_PERCENT)
        self.percent = clamped
        self._send(f"Status: {state} ({clamped:.1f}%)")

    def succeeded(self, video_url: str) -> None:
        """Terminal success marker carrying the video location."""
        if self.finished:
            logger.warning("Ignoring duplicate terminal event")
            return
        self.percent = 100.0
        self._send(f"DONE: [Download Video]({video_url})")
        self.finished = True

    def failed(self, reason: str) -> None:
        """Terminal failure marker carrying the error message."""
        if self.finished:
            logger.warning("Ignoring duplicate terminal event")
            return
        self._send(f"Error: {reason}")
        self.finished = True
