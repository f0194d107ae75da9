"""
Chain Engine for Long-Form Video Generation

Produces videos longer than a provider's per-request limit by generating
short segments in sequence, seeding each with the last frame of the
previous one, and stitching the results with a lossless concat.

Usage:
    from chainreel_worker.tasks.chain_engine import (
        ChainOrchestrator,
        GenerationRequest,
        HttpProviderClient,
        ProgressReporter,
        SqlVideoRecordGateway,
    )

    with HttpProviderClient(api_key) as provider:
        orchestrator = ChainOrchestrator(
            provider=provider,
            gateway=SqlVideoRecordGateway(),
            generated_root=Path("/data/generated"),
            public_base_url="https://example.com",
        )
        result = orchestrator.run(
            GenerationRequest(prompt="a fox in the snow", model="sora-2", total_seconds=32),
            user_id="user_123",
            session_id=session_id,
            reporter=ProgressReporter(emit=print),
        )
"""

from .errors import (
    ChainError,
    ChainCancelled,
    DownloadFailed,
    FrameExtractionFailed,
    ProviderRejected,
    ProviderUnreachable,
    SegmentGenerationFailed,
    SegmentTimeout,
    StitchFailed,
)

from .models import (
    AspectRatio,
    ChainResult,
    GenerationRequest,
    PollResult,
    PollStatus,
    ProviderFamily,
    ResolvedModel,
    Segment,
    SegmentStatus,
    VideoRecord,
)

from .model_resolver import (
    classify_family,
    resolve_model,
)

from .payloads import (
    FAMILY_PROFILES,
    FamilyProfile,
    SubmitPayload,
    builder_for,
    profile_for,
)

from .provider_client import (
    HttpProviderClient,
    ProviderClient,
)

from .frames import extract_last_frame
from .stitcher import concat_videos
from .progress import ProgressReporter, global_percent
from .workspace import TemporaryWorkspace, public_url

from .persistence import (
    GeneratedVideo,
    SqlVideoRecordGateway,
    VideoRecordGateway,
    WorkerBase,
)

from .orchestrator import (
    ChainOrchestrator,
    iteration_count,
)

__all__ = [
    # Errors
    "ChainError",
    "ChainCancelled",
    "DownloadFailed",
    "FrameExtractionFailed",
    "ProviderRejected",
    "ProviderUnreachable",
    "SegmentGenerationFailed",
    "SegmentTimeout",
    "StitchFailed",
    # Models
    "AspectRatio",
    "ChainResult",
    "GenerationRequest",
    "PollResult",
    "PollStatus",
    "ProviderFamily",
    "ResolvedModel",
    "Segment",
    "SegmentStatus",
    "VideoRecord",
    # Model resolution and payloads
    "classify_family",
    "resolve_model",
    "FAMILY_PROFILES",
    "FamilyProfile",
    "SubmitPayload",
    "builder_for",
    "profile_for",
    # Collaborators
    "HttpProviderClient",
    "ProviderClient",
    "extract_last_frame",
    "concat_videos",
    "ProgressReporter",
    "global_percent",
    "TemporaryWorkspace",
    "public_url",
    "GeneratedVideo",
    "SqlVideoRecordGateway",
    "VideoRecordGateway",
    "WorkerBase",
    # Orchestration
    "ChainOrchestrator",
    "iteration_count",
]
