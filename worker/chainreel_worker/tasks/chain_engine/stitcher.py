"""
Video Stitcher

Joins chain segments with the FFmpeg concat demuxer and ``-c copy``.
Segments of one chain come from the same provider and model, so they share
codec and container parameters and a stream copy is always legal. Runtime
is I/O bound, never an encode.
"""

import logging
import shutil
from pathlib import Path
from typing import Sequence
from uuid import uuid4

from ..ffmpeg_runner import FFmpegError, FFmpegTimeout, run_ffmpeg
from .errors import StitchFailed

logger = logging.getLogger(__name__)

CONCAT_TIMEOUT = 600


def _quote_concat_path(path: Path) -> str:
    """Escape a path for a concat demuxer list entry."""
    escaped = path.resolve().as_posix().replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_list(paths: Sequence[Path], list_path: Path) -> Path:
    """Write the concat demuxer input list."""
    list_path.write_text("\n".join(_quote_concat_path(p) for p in paths) + "\n", encoding="utf-8")
    return list_path


def concat_videos(paths: Sequence[Path], output_path: Path) -> Path:
    """
    Concatenate videos, in order, into a single file.

    A single input is copied as-is.

    Args:
        paths: Ordered segment files
        output_path: Destination file

    Returns:
        output_path

    Raises:
        StitchFailed: If there are no inputs, an input is missing, or
            FFmpeg fails
    """
    paths = [Path(p) for p in paths]
    output_path = Path(output_path)

    if not paths:
        raise StitchFailed("No video segments to stitch")

    missing = [p.name for p in paths if not p.is_file()]
    if missing:
        raise StitchFailed(f"Missing segment file(s): {', '.join(missing)}")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    if len(paths) == 1:
        try:
            shutil.copyfile(paths[0], output_path)
        except OSError as e:
            raise StitchFailed(f"Failed to write output video: {e}")
        logger.info(f"Single segment, copied to {output_path}")
        return output_path

    list_path = paths[0].parent / f"concat_{uuid4().hex[:8]}.txt"
    write_concat_list(paths, list_path)

    cmd = [
        "ffmpeg",
        "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        str(output_path),
    ]

    logger.info(f"Stitching {len(paths)} segments into {output_path}")
    try:
        run_ffmpeg(cmd, timeout_seconds=CONCAT_TIMEOUT)
    except (FFmpegError, FFmpegTimeout) as e:
        output_path.unlink(missing_ok=True)
        raise StitchFailed(f"Error joining videos: {e}")
    finally:
        list_path.unlink(missing_ok=True)

    if not output_path.is_file():
        raise StitchFailed("FFmpeg reported success but produced no output")

    return output_path
