"""
Continuity Frame Extraction

Grabs the still that seeds the next segment. The grab is taken at 99% of
the clip rather than the literal last frame: streamed encodes often end on
a black or partially decoded frame.

Blocking (ffprobe + ffmpeg subprocesses); runs inside the worker process.
"""

import logging
from pathlib import Path
from uuid import uuid4

from ..ffmpeg_runner import FFmpegError, FFmpegTimeout, probe_duration, run_ffmpeg
from .errors import FrameExtractionFailed

logger = logging.getLogger(__name__)

SEEK_FRACTION = 0.99
FRAME_EXTRACTION_TIMEOUT = 60
JPEG_QUALITY = "2"  # ffmpeg -q:v scale, 2 is near-lossless
# Fallback grab distance from the end when the 99% seek lands past the last frame
TAIL_FALLBACK_SECONDS = 0.5


def seek_position(duration_seconds: float) -> float:
    """Seek target for a clip of the given duration."""
    return round(duration_seconds * SEEK_FRACTION, 3)


def extract_last_frame(video_path: Path) -> bytes:
    """
    Extract a JPEG still from near the end of a video.

    Args:
        video_path: Local video file

    Returns:
        JPEG bytes

    Raises:
        FrameExtractionFailed: If the file is missing, has no duration,
            or FFmpeg cannot produce a frame
    """
    video_path = Path(video_path)
    if not video_path.is_file():
        raise FrameExtractionFailed(f"Cannot extract frame, file not found: {video_path.name}")

    duration = probe_duration(video_path)
    if not duration or duration <= 0:
        raise FrameExtractionFailed(
            f"Cannot extract frame from {video_path.name}: unreadable or zero duration"
        )

    positions = [seek_position(duration)]
    fallback = round(max(0.0, duration - TAIL_FALLBACK_SECONDS), 3)
    if fallback < positions[0]:
        positions.append(fallback)

    last_error = ""
    for position in positions:
        try:
            data = _grab_frame(video_path, position)
        except FFmpegTimeout as e:
            raise FrameExtractionFailed(f"Frame extraction failed for {video_path.name}: {e}")
        except FFmpegError as e:
            last_error = f"Frame extraction failed for {video_path.name}: {e}"
            continue
        if data:
            logger.info(
                f"Extracted continuity frame from {video_path.name} at {position:.3f}s "
                f"({len(data)} bytes)"
            )
            return data
        last_error = f"FFmpeg produced no frame for {video_path.name} at {position:.3f}s"
        logger.debug(last_error)

    raise FrameExtractionFailed(last_error)


def _grab_frame(video_path: Path, position: float) -> bytes:
    """Write one JPEG at ``position`` and return its bytes (empty if none)."""
    frame_path = video_path.parent / f"frame_{uuid4().hex[:8]}.jpg"

    # -ss before -i for fast input seeking
    cmd = [
        "ffmpeg",
        "-y",
        "-ss", f"{position:.3f}",
        "-i", str(video_path),
        "-frames:v", "1",
        "-q:v", JPEG_QUALITY,
        str(frame_path),
    ]

    try:
        run_ffmpeg(cmd, timeout_seconds=FRAME_EXTRACTION_TIMEOUT)
        if not frame_path.is_file():
            return b""
        return frame_path.read_bytes()
    finally:
        frame_path.unlink(missing_ok=True)
