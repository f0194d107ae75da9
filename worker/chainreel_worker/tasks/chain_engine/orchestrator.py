"""
Segment Generation Loop

Drives one chained generation end to end:

    Initializing
      -> GeneratingSegment(i)      submit, poll, download, intermediate record
      -> ExtractingFrame(i)        only while more segments remain
      -> ... GeneratingSegment(i+1)
      -> Stitching -> Persisting -> Cleanup -> Done(video_url)
    any step -> Failed(reason)

Segments are causally chained through their continuity frames, so the loop
is strictly sequential. Every failure is converted into one terminal event
on the progress stream; ``run`` never raises.
"""

import logging
import math
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from .errors import (
    ChainCancelled,
    ChainError,
    ProviderUnreachable,
    SegmentGenerationFailed,
    SegmentTimeout,
)
from .frames import extract_last_frame
from .model_resolver import classify_family, resolve_model
from .models import (
    ChainResult,
    GenerationRequest,
    PollStatus,
    ProviderFamily,
    Segment,
    SegmentStatus,
    VideoRecord,
)
from .payloads import FAMILY_PROFILES, FamilyProfile, PayloadBuilder, builder_for
from .persistence import VideoRecordGateway
from .progress import ProgressReporter, global_percent
from .provider_client import ProviderClient
from .stitcher import concat_videos
from .workspace import TemporaryWorkspace, public_url

logger = logging.getLogger(__name__)


def iteration_count(total_seconds: int, profile: FamilyProfile) -> int:
    """
    Number of segments needed for the requested duration.

    ``ceil(max(minimum, total) / per_segment)``, never less than 1.

    Example:
        >>> iteration_count(32, FAMILY_PROFILES[ProviderFamily.SORA])
        3
    """
    planned = max(profile.minimum_seconds, total_seconds)
    return max(1, math.ceil(planned / profile.segment_seconds))


class ChainOrchestrator:
    """
    Runs the segmented generation loop for one request at a time.

    All collaborators are injected so the loop can run against fakes with
    a zero-delay ``sleep``.

    Args:
        provider: Submits, polls and downloads provider tasks
        gateway: Stores intermediate and final video records
        generated_root: Public generated-media directory
        public_base_url: Origin used to build public video URLs
        frame_extractor: Video path -> JPEG bytes of the continuity frame
        stitcher: (ordered paths, output path) -> output path
        sleep: Delay function used between status checks
        cancel_requested: Polled between segments; True stops the chain
        profiles: Per-family timing overrides
    """

    def __init__(
        self,
        provider: ProviderClient,
        gateway: VideoRecordGateway,
        generated_root: Path,
        public_base_url: str,
        frame_extractor: Callable[[Path], bytes] = extract_last_frame,
        stitcher: Callable[[Sequence[Path], Path], Path] = concat_videos,
        sleep: Callable[[float], None] = time.sleep,
        cancel_requested: Optional[Callable[[], bool]] = None,
        profiles: Optional[Dict[ProviderFamily, FamilyProfile]] = None,
    ):
        self.provider = provider
        self.gateway = gateway
        self.generated_root = Path(generated_root)
        self.public_base_url = public_base_url
        self.frame_extractor = frame_extractor
        self.stitcher = stitcher
        self.sleep = sleep
        self.cancel_requested = cancel_requested
        self.profiles = profiles or FAMILY_PROFILES

    def run(
        self,
        request: GenerationRequest,
        user_id: str,
        session_id: str,
        reporter: ProgressReporter,
    ) -> ChainResult:
        """
        Generate, stitch and persist a chained video.

        Returns:
            ChainResult; on failure ``success`` is False and ``error`` holds
            the same reason sent to the client
        """
        result = ChainResult(success=False, session_id=session_id)
        workspace: Optional[TemporaryWorkspace] = None
        final_path: Optional[Path] = None

        try:
            family = classify_family(request.model)
            if family is None:
                raise ChainError(f"Model {request.model!r} does not support chained generation")
            profile = self.profiles[family]
            builder = builder_for(family)

            count = iteration_count(request.total_seconds, profile)
            result.iteration_count = count

            workspace = TemporaryWorkspace.create(self.generated_root, session_id)
            logger.info(
                f"Chain {session_id}: {request.total_seconds}s requested, "
                f"{count} segment(s) of {profile.segment_seconds}s on {family.value}"
            )
            reporter.message(
                f"Starting chained generation: {request.total_seconds}s requested "
                f"({count} segments, aspect {request.aspect_ratio.value})"
            )

            seed_images: List[bytes] = list(request.reference_images)
            segment_paths: List[Path] = []
            intermediate_ids: List[str] = []

            for index in range(count):
                if index > 0:
                    self._check_cancelled(index)

                segment = self._generate_segment(
                    request, index, count, seed_images, builder, profile, workspace, result, reporter
                )
                segment_paths.append(segment.local_path)

                record_id = self.gateway.insert(
                    VideoRecord(
                        user_id=user_id,
                        prompt=segment.prompt,
                        model=request.model,
                        video_url=public_url(
                            self.public_base_url, self.generated_root, segment.local_path
                        ),
                        is_intermediate=True,
                        session_id=session_id,
                    )
                )
                intermediate_ids.append(record_id)
                reporter.message(f"Segment {index + 1} saved.")

                if index < count - 1:
                    reporter.message("Extracting last frame for continuity...")
                    # Only the trailing frame: the next segment's end stays free to evolve.
                    seed_images = [self.frame_extractor(segment.local_path)]

            reporter.message(f"Stitching {len(segment_paths)} video(s)...")
            final_path = self.generated_root / f"chain_{uuid4().hex}.mp4"
            self.stitcher(segment_paths, final_path)
            video_url = public_url(self.public_base_url, self.generated_root, final_path)

            self.gateway.insert(
                VideoRecord(
                    user_id=user_id,
                    prompt=request.prompt,
                    model=request.model,
                    video_url=video_url,
                    is_intermediate=False,
                    session_id=session_id,
                    duration_seconds=request.total_seconds,
                )
            )
            final_path = None
            reporter.message("Final video saved.")

            self._delete_intermediates(session_id, intermediate_ids)
            workspace.cleanup()
            workspace = None

            result.success = True
            result.video_url = video_url
            logger.info(f"Chain {session_id} complete: {video_url}")
            reporter.succeeded(video_url)
            return result

        except ChainError as e:
            logger.error(f"Chain {session_id} failed: {e}")
            return self._fail(result, workspace, final_path, reporter, str(e))
        except Exception as e:
            logger.error(f"Chain {session_id} crashed: {e}", exc_info=True)
            return self._fail(result, workspace, final_path, reporter, f"Unexpected error: {e}")

    # ------------------------------------------------------------------
    # Segment steps
    # ------------------------------------------------------------------

    def _generate_segment(
        self,
        request: GenerationRequest,
        index: int,
        count: int,
        seed_images: List[bytes],
        builder: PayloadBuilder,
        profile: FamilyProfile,
        workspace: TemporaryWorkspace,
        result: ChainResult,
        reporter: ProgressReporter,
    ) -> Segment:
        """Submit, poll and download one segment."""
        prompt = builder.segment_prompt(request.prompt, index)
        resolved = resolve_model(
            request.model,
            request.aspect_ratio,
            request.fast_requested,
            has_reference_image=bool(seed_images),
        )
        segment = Segment(
            index=index,
            model=resolved.model,
            prompt=prompt,
            reference_images=list(seed_images),
        )
        result.segments.append(segment)

        reporter.message(f"--- Segment {index + 1}/{count} ---")
        payload = builder.build(
            prompt,
            resolved,
            seed_images,
            request.aspect_ratio,
            request.total_seconds,
            index=index,
        )

        try:
            reporter.message(f"Requesting generation (segment {index + 1}, model {resolved.model})...")
            segment.mark_submitted(self.provider.submit(payload))
            logger.info(f"Segment {index + 1}/{count} submitted as task {segment.task_id}")

            url = self._wait_for_segment(segment, count, profile, reporter)

            reporter.message(f"Downloading segment {index + 1}...")
            local_path = self.provider.download(url, workspace.segment_path(index))
        except ChainError:
            segment.mark_failed()
            raise

        segment.mark_completed(local_path)
        return segment

    def _wait_for_segment(
        self,
        segment: Segment,
        count: int,
        profile: FamilyProfile,
        reporter: ProgressReporter,
    ) -> str:
        """
        Poll a submitted segment until it yields a result URL.

        Raises:
            SegmentGenerationFailed: Provider reported failure
            SegmentTimeout: Attempt bound exhausted
        """
        segment.mark_polling()

        for attempt in range(1, profile.max_poll_attempts + 1):
            self.sleep(profile.poll_interval_seconds)
            segment.poll_attempts = attempt

            try:
                poll = self.provider.poll(segment.task_id)
            except ProviderUnreachable as e:
                logger.warning(f"Status check {attempt} for segment {segment.index + 1} failed: {e}")
                continue

            if poll.status == PollStatus.FAILED:
                raise SegmentGenerationFailed(segment.index, poll.error or "Unknown reason")

            logger.debug(
                f"Segment {segment.index + 1} task {segment.task_id}: "
                f"{poll.status.value} {poll.progress_percent:.0f}%"
            )
            reporter.status(
                poll.status.value,
                global_percent(segment.index, poll.progress_percent, count),
            )

            if poll.status == PollStatus.COMPLETED:
                if poll.result_url:
                    return poll.result_url
                logger.warning(f"Task {segment.task_id} completed without a result URL, still polling")

        raise SegmentTimeout(segment.index, profile.max_poll_attempts)

    # ------------------------------------------------------------------
    # Cleanup and cancellation
    # ------------------------------------------------------------------

    def _check_cancelled(self, completed_segments: int) -> None:
        if self.cancel_requested is not None and self.cancel_requested():
            raise ChainCancelled(completed_segments)

    def _delete_intermediates(self, session_id: str, record_ids: List[str]) -> None:
        """Remove intermediate records once the final record exists."""
        if not record_ids:
            return
        try:
            self.gateway.delete_many(record_ids)
        except Exception as e:
            # The final video is already persisted; stale intermediates are garbage-collectable.
            logger.warning(
                f"Chain {session_id}: failed to delete {len(record_ids)} intermediate record(s): {e}",
                exc_info=True,
            )

    def _fail(
        self,
        result: ChainResult,
        workspace: Optional[TemporaryWorkspace],
        final_path: Optional[Path],
        reporter: ProgressReporter,
        reason: str,
    ) -> ChainResult:
        """Best-effort cleanup, then the terminal failure event."""
        for segment in result.segments:
            if segment.status not in (SegmentStatus.COMPLETED, SegmentStatus.FAILED):
                segment.mark_failed()

        if final_path is not None:
            try:
                final_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove partial output {final_path}: {e}")

        if workspace is not None:
            workspace.cleanup()

        result.success = False
        result.error = reason
        reporter.failed(reason)
        return result
