"""
Temporary Workspace

One directory per orchestration run, under the generated-media root:

    {generated_root}/temp_{session_id}/seg_0_1a2b3c4d.mp4

Removed on success and on failure. Removal is best-effort.
"""

import logging
import shutil
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "generated"


class TemporaryWorkspace:
    """Filesystem scratch space owned by a single run."""

    def __init__(self, generated_root: Path, path: Path):
        self.generated_root = Path(generated_root)
        self.path = Path(path)

    @classmethod
    def create(cls, generated_root: Path, session_id: str) -> "TemporaryWorkspace":
        """Create ``temp_<session_id>`` under the generated-media root."""
        generated_root = Path(generated_root)
        path = generated_root / f"temp_{session_id}"
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created workspace {path}")
        return cls(generated_root, path)

    def segment_path(self, index: int) -> Path:
        """Unique file path for a downloaded segment."""
        return self.path / f"seg_{index}_{uuid4().hex[:8]}.mp4"

    def cleanup(self) -> bool:
        """
        Recursively delete the workspace.

        Returns:
            True if the directory is gone afterwards
        """
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Workspace cleanup failed for {self.path}: {e}")
            return False
        logger.debug(f"Removed workspace {self.path}")
        return True


def public_url(base_url: str, generated_root: Path, path: Path) -> str:
    """
    Public URL of a file under the generated-media root.

    Example:
        >>> public_url("https://host", Path("/data/generated"), Path("/data/generated/a.mp4"))
        'https://host/generated/a.mp4'
    """
    relative = Path(path).resolve().relative_to(Path(generated_root).resolve())
    return f"{base_url.rstrip('/')}/{PUBLIC_PREFIX}/{relative.as_posix()}"
