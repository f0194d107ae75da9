"""
FFmpeg Runner with Timeout Enforcement

Runs FFmpeg/FFprobe commands with:
- Strict timeout enforcement
- Process group management for clean termination
- Detailed error reporting

All media post-processing in the chain (frame grabs, concatenation) goes
through here so a wedged encoder can never hang a worker.
"""

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Stderr kept in error messages
STDERR_TAIL_CHARS = 2000


class FFmpegTimeout(Exception):
    """Raised when FFmpeg exceeds the allowed timeout."""

    pass


class FFmpegError(Exception):
    """Raised when FFmpeg fails with a non-zero exit code."""

    pass


def run_ffmpeg(cmd: List[str], timeout_seconds: int = 300) -> str:
    """
    Run an FFmpeg command with timeout enforcement.

    The process runs in its own process group so that on timeout the whole
    group (including any helper processes) is killed with SIGKILL.

    Args:
        cmd: Full command as list of arguments
        timeout_seconds: Maximum allowed runtime in seconds

    Returns:
        Captured stderr (FFmpeg writes its log there)

    Raises:
        FFmpegTimeout: If the command exceeds the timeout
        FFmpegError: If the command fails or cannot be started

    Example:
        run_ffmpeg(
            ["ffmpeg", "-y", "-i", "input.mp4", "-frames:v", "1", "frame.jpg"],
            timeout_seconds=60,
        )
    """
    logger.debug(f"FFmpeg command: {' '.join(cmd)}")
    start_time = time.time()

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
            preexec_fn=os.setsid,
        )
    except OSError as e:
        raise FFmpegError(f"Failed to start {cmd[0]}: {e}")

    try:
        _, stderr_output = process.communicate(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        elapsed = time.time() - start_time
        logger.warning(f"FFmpeg timeout after {elapsed:.1f}s (limit: {timeout_seconds}s)")
        _kill_process_group(process)
        process.communicate()
        raise FFmpegTimeout(f"FFmpeg exceeded timeout of {timeout_seconds} seconds")

    if process.returncode != 0:
        error_msg = f"FFmpeg failed with code {process.returncode}"
        if stderr_output:
            error_msg += f": {stderr_output[-STDERR_TAIL_CHARS:]}"
        logger.error(error_msg)
        raise FFmpegError(error_msg)

    logger.debug(f"FFmpeg completed in {time.time() - start_time:.1f}s")
    return stderr_output or ""


def probe_duration(path: Path, timeout_seconds: int = 30) -> Optional[float]:
    """
    Get a media file's duration in seconds using ffprobe.

    Prefers the container duration and falls back to the first video
    stream's duration.

    Args:
        path: Path to the media file
        timeout_seconds: Maximum allowed runtime

    Returns:
        Duration in seconds, or None if it cannot be determined
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration:stream=duration",
        "-select_streams", "v:0",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_seconds)
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"ffprobe failed for {path}: {e}")
        return None

    if result.returncode != 0:
        logger.warning(f"ffprobe failed for {path}: {result.stderr.strip()}")
        return None

    for line in result.stdout.splitlines():
        line = line.strip()
        if not line or line == "N/A":
            continue
        try:
            return float(line)
        except ValueError:
            continue
    return None


def _kill_process_group(process: subprocess.Popen) -> None:
    """
    Kill FFmpeg process and its entire process group.

    Uses SIGKILL to ensure immediate termination.
    Catches and logs any errors during termination.

    Args:
        process: The subprocess.Popen instance to kill
    """
    try:
        pgid = os.getpgid(process.pid)
        logger.info(f"Killing FFmpeg process group {pgid}")
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug("Process already terminated")
    except OSError as e:
        logger.warning(f"Error killing process group: {e}")
        try:
            process.kill()
        except OSError:
            logger.debug("Process kill fallback failed")


def validate_ffmpeg_available() -> bool:
    """
    Check if FFmpeg and FFprobe are available and working.

    Returns:
        True if both are available, False otherwise
    """
    for binary in ("ffmpeg", "ffprobe"):
        try:
            result = subprocess.run(
                [binary, "-version"],
                capture_output=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"{binary} not available: {e}")
            return False
        if result.returncode != 0:
            return False
    return True
