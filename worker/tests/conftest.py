"""
Root conftest for worker tests.

Provides:
- Scripted provider and in-memory record gateway doubles for the segment loop
- Fake frame extraction and stitching so the loop runs without FFmpeg
- In-memory SQLite for the SQL gateway
- FFmpeg-gated helpers for media integration tests
"""

import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set a writable default storage path before importing modules that read it
_default_storage = Path(tempfile.mkdtemp(prefix="chainreel_worker_test_"))
os.environ.setdefault("STORAGE_PATH", str(_default_storage))

from chainreel_worker.tasks.chain_engine import (
    ChainOrchestrator,
    PollResult,
    PollStatus,
    ProgressReporter,
    SubmitPayload,
    VideoRecord,
)
from chainreel_worker.tasks.chain_engine.errors import ProviderUnreachable
from chainreel_worker.tasks.chain_engine.payloads import FAMILY_PROFILES, FamilyProfile
from chainreel_worker.tasks.chain_engine.persistence import WorkerBase

FFMPEG_AVAILABLE = shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


# ============================================================================
# Provider / Gateway Doubles
# ============================================================================


PollScript = Union[PollResult, Exception]


class FakeProvider:
    """
    Scripted ProviderClient.

    Each submit consumes the next poll script; each poll pops the next entry
    of the current script. An Exception entry is raised instead of returned.
    Once a script runs dry the last entry repeats.

    Usage:
        provider = FakeProvider([
            [FakeProvider.processing(40), FakeProvider.completed("https://cdn/seg0.mp4")],
            [FakeProvider.failed("content policy")],
        ])
    """

    @staticmethod
    def processing(percent: float = 50.0) -> PollResult:
        return PollResult(
            status=PollStatus.PROCESSING, progress_percent=percent, raw_status="processing"
        )

    @staticmethod
    def completed(url: Optional[str]) -> PollResult:
        return PollResult(
            status=PollStatus.COMPLETED, progress_percent=100.0, result_url=url, raw_status="completed"
        )

    @staticmethod
    def failed(reason: Optional[str]) -> PollResult:
        return PollResult(status=PollStatus.FAILED, error=reason, raw_status="failed")

    @staticmethod
    def unreachable() -> ProviderUnreachable:
        return ProviderUnreachable("connection reset")

    def __init__(self, scripts: Iterable[Sequence[PollScript]]):
        self._scripts: List[List[PollScript]] = [list(s) for s in scripts]
        self.submitted: List[SubmitPayload] = []
        self.polls: List[str] = []
        self.downloads: List[str] = []
        self.submit_error: Optional[Exception] = None
        self._current: List[PollScript] = []
        self._last: Optional[PollScript] = None

    def submit(self, payload: SubmitPayload) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(payload)
        index = len(self.submitted) - 1
        self._current = list(self._scripts[index]) if index < len(self._scripts) else []
        self._last = None
        return f"task_{index}"

    def poll(self, task_id: str) -> PollResult:
        self.polls.append(task_id)
        if self._current:
            self._last = self._current.pop(0)
        entry = self._last
        if entry is None:
            return PollResult(status=PollStatus.PROCESSING)
        if isinstance(entry, Exception):
            raise entry
        return entry

    def download(self, url: str, dest_path: Path) -> Path:
        self.downloads.append(url)
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_bytes(f"video:{url}".encode("utf-8"))
        return dest_path


class FakeGateway:
    """In-memory VideoRecordGateway."""

    def __init__(self, fail_delete: bool = False):
        self.records: Dict[str, VideoRecord] = {}
        self.inserted: List[VideoRecord] = []
        self.deleted: List[str] = []
        self.fail_delete = fail_delete

    def insert(self, record: VideoRecord) -> str:
        record_id = f"rec_{len(self.inserted)}"
        self.records[record_id] = record
        self.inserted.append(record)
        return record_id

    def delete_many(self, record_ids: Iterable[str]) -> int:
        if self.fail_delete:
            raise RuntimeError("database is locked")
        removed = 0
        for record_id in record_ids:
            if self.records.pop(record_id, None) is not None:
                self.deleted.append(record_id)
                removed += 1
        return removed


class FakeFrameExtractor:
    """Returns a distinct JPEG-ish payload per call and records the inputs."""

    def __init__(self):
        self.calls: List[Path] = []

    def __call__(self, video_path: Path) -> bytes:
        self.calls.append(Path(video_path))
        return f"frame-of-{Path(video_path).name}".encode("utf-8")


class FakeStitcher:
    """Concatenates the segment bytes into the output file."""

    def __init__(self):
        self.calls: List[List[Path]] = []

    def __call__(self, paths: Sequence[Path], output_path: Path) -> Path:
        self.calls.append([Path(p) for p in paths])
        output_path = Path(output_path)
        output_path.write_bytes(b"".join(Path(p).read_bytes() for p in paths))
        return output_path


class RecordingEmitter:
    """Collects emitted lines and progress snapshots."""

    def __init__(self):
        self.lines: List[str] = []
        self.snapshots: List[tuple] = []

    def emit(self, text: str) -> None:
        self.lines.append(text)

    def progress(self, percent: int, message: str) -> None:
        self.snapshots.append((percent, message))

    @property
    def text(self) -> str:
        return "".join(self.lines)


# ============================================================================
# Orchestrator Fixtures
# ============================================================================


@pytest.fixture
def generated_root(tmp_path: Path) -> Path:
    """Isolated public generated-media directory."""
    root = tmp_path / "generated"
    root.mkdir()
    return root


@pytest.fixture
def fake_provider() -> type:
    """The FakeProvider class, for building scripted providers in tests."""
    return FakeProvider


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def frame_extractor() -> FakeFrameExtractor:
    return FakeFrameExtractor()


@pytest.fixture
def stitcher() -> FakeStitcher:
    return FakeStitcher()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def reporter(emitter: RecordingEmitter) -> ProgressReporter:
    return ProgressReporter(emit=emitter.emit, progress_callback=emitter.progress)


@pytest.fixture
def fast_profiles() -> Dict:
    """Family profiles with a short attempt bound so timeouts stay quick."""
    return {
        family: FamilyProfile(
            family=profile.family,
            segment_seconds=profile.segment_seconds,
            minimum_seconds=profile.minimum_seconds,
            poll_interval_seconds=profile.poll_interval_seconds,
            max_poll_attempts=4,
            image_field=profile.image_field,
            max_reference_images=profile.max_reference_images,
        )
        for family, profile in FAMILY_PROFILES.items()
    }


@pytest.fixture
def make_orchestrator(
    gateway: FakeGateway,
    generated_root: Path,
    frame_extractor: FakeFrameExtractor,
    stitcher: FakeStitcher,
) -> Callable[..., ChainOrchestrator]:
    """
    Factory for an orchestrator wired to fakes with a zero-delay sleep.

    Usage:
        orchestrator = make_orchestrator(provider, cancel_requested=lambda: True)
    """

    def _make(provider: FakeProvider, **overrides) -> ChainOrchestrator:
        options = dict(
            provider=provider,
            gateway=gateway,
            generated_root=generated_root,
            public_base_url="https://videos.example.com",
            frame_extractor=frame_extractor,
            stitcher=stitcher,
            sleep=lambda seconds: None,
        )
        options.update(overrides)
        return ChainOrchestrator(**options)

    return _make


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def test_db_engine():
    """Create in-memory SQLite engine with the worker tables.

    Each test gets a fresh database.
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    WorkerBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Context-manager session factory bound to the test engine."""
    SessionLocal = sessionmaker(bind=test_db_engine, autocommit=False, autoflush=False)

    @contextmanager
    def _session():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    return _session


# ============================================================================
# Media Fixtures (FFmpeg)
# ============================================================================


@pytest.fixture
def require_ffmpeg() -> None:
    """Skip unless ffmpeg and ffprobe are in PATH."""
    if not FFMPEG_AVAILABLE:
        pytest.skip("ffmpeg and ffprobe must be in PATH")


@pytest.fixture
def make_test_clip(tmp_path: Path, require_ffmpeg) -> Callable[..., Path]:
    """
    Factory rendering a short MPEG-4 test pattern clip with FFmpeg.

    Clips from one factory share codec parameters, so they can be joined
    with a stream copy.
    """

    def _make(name: str, seconds: float = 1.0, size: str = "160x90") -> Path:
        path = tmp_path / name
        subprocess.run(
            [
                "ffmpeg", "-y", "-v", "error",
                "-f", "lavfi",
                "-i", f"testsrc=duration={seconds}:size={size}:rate=24",
                "-c:v", "mpeg4",
                "-pix_fmt", "yuv420p",
                str(path),
            ],
            check=True,
            capture_output=True,
        )
        return path

    return _make
