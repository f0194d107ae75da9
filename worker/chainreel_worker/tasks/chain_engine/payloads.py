"""
Provider Payload Builders

One builder per provider family. Each builder knows which form fields the
family expects, which field carries reference images, how many images it
accepts, and the continuity language appended to follow-up segments.

Per-family timing (segment length, polling cadence) lives in FamilyProfile.
These are properties of the provider, not user settings: providers cap the
duration of a single call.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .models import AspectRatio, ProviderFamily, ResolvedModel

IMAGE_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class FamilyProfile:
    """
    Timing and attachment rules for a provider family.

    Attributes:
        family: Provider family
        segment_seconds: Length of one generated segment
        minimum_seconds: Shortest total duration the chain will plan for
        poll_interval_seconds: Delay before each status check
        max_poll_attempts: Status checks allowed per segment
        image_field: Multipart field name for reference images
        max_reference_images: Images accepted per submit
    """

    family: ProviderFamily
    segment_seconds: int
    minimum_seconds: int
    poll_interval_seconds: float
    max_poll_attempts: int
    image_field: str
    max_reference_images: int

    @property
    def max_segment_wait_seconds(self) -> float:
        """Worst-case polling wall clock for one segment."""
        return self.poll_interval_seconds * self.max_poll_attempts


FAMILY_PROFILES: Dict[ProviderFamily, FamilyProfile] = {
    ProviderFamily.SORA: FamilyProfile(
        family=ProviderFamily.SORA,
        segment_seconds=15,
        minimum_seconds=10,
        poll_interval_seconds=5.0,
        max_poll_attempts=120,
        image_field="input_image",
        max_reference_images=1,
    ),
    ProviderFamily.VEO: FamilyProfile(
        family=ProviderFamily.VEO,
        segment_seconds=5,
        minimum_seconds=5,
        poll_interval_seconds=5.0,
        max_poll_attempts=120,
        image_field="input_reference",
        # Start and end frame; chained segments only ever send the start.
        max_reference_images=2,
    ),
}


@dataclass(frozen=True)
class SubmitPayload:
    """
    Multipart body for ``POST /v1/videos``.

    Attributes:
        fields: Plain form fields
        images: (field name, filename, JPEG bytes) per attached image
    """

    fields: Dict[str, str]
    images: List[Tuple[str, str, bytes]] = field(default_factory=list)

    def to_multipart(self) -> list:
        """
        Encode as an httpx ``files`` list.

        Plain fields go in as filename-less parts so the body is
        multipart/form-data even when no image is attached.
        """
        parts: list = [
            (name, (None, value.encode("utf-8")))
            for name, value in self.fields.items()
        ]
        parts.extend(
            (field_name, (filename, content, IMAGE_CONTENT_TYPE))
            for field_name, filename, content in self.images
        )
        return parts


class PayloadBuilder:
    """Base builder. Subclasses set the family and continuity text."""

    family: ProviderFamily
    continuation_suffix: str = ""

    @property
    def profile(self) -> FamilyProfile:
        return FAMILY_PROFILES[self.family]

    def segment_prompt(self, prompt: str, index: int) -> str:
        """Original prompt for the first segment, continuity language after."""
        if index == 0:
            return prompt
        return f"{prompt}. {self.continuation_suffix}"

    def extra_fields(self, aspect_ratio: AspectRatio, total_seconds: int) -> Dict[str, str]:
        return {}

    def build(
        self,
        prompt: str,
        resolved: ResolvedModel,
        reference_images: Sequence[bytes],
        aspect_ratio: AspectRatio,
        total_seconds: int,
        index: int = 0,
    ) -> SubmitPayload:
        """
        Build the submit payload for one segment.

        Args:
            prompt: Prompt for this segment (continuity text already applied)
            resolved: Resolved model for this segment
            reference_images: Seed images as JPEG bytes
            aspect_ratio: Requested orientation
            total_seconds: Total requested duration of the chain
            index: Segment index, used in attachment filenames

        Returns:
            SubmitPayload ready for the provider client
        """
        fields = {"prompt": prompt, "model": resolved.model}
        fields.update(self.extra_fields(aspect_ratio, total_seconds))

        images: List[Tuple[str, str, bytes]] = []
        if resolved.supports_reference_image:
            limit = self.profile.max_reference_images
            for j, content in enumerate(list(reference_images)[:limit]):
                images.append((self.profile.image_field, f"ref_{index}_{j}.jpg", content))

        return SubmitPayload(fields=fields, images=images)


class SoraPayloadBuilder(PayloadBuilder):
    """SORA: orientation and length travel as form fields."""

    family = ProviderFamily.SORA
    continuation_suffix = (
        "Continue the video sequence seamlessly from the provided starting frame. "
        "Develop the action and narrative further; do not simply repeat the initial scene. "
        "Ensure visual consistency with the previous segment."
    )

    SIZES: Dict[AspectRatio, str] = {
        AspectRatio.LANDSCAPE: "1280x720",
        AspectRatio.PORTRAIT: "720x1280",
        AspectRatio.SQUARE: "1024x1024",
    }

    def extra_fields(self, aspect_ratio: AspectRatio, total_seconds: int) -> Dict[str, str]:
        return {
            "size": self.SIZES[aspect_ratio],
            "seconds": "10" if total_seconds <= 10 else "15",
        }


class VeoPayloadBuilder(PayloadBuilder):
    """VEO: orientation lives in the model suffix, never in a size field."""

    family = ProviderFamily.VEO
    continuation_suffix = (
        "Seamlessly continue the motion and narrative from the reference starting frame. "
        "Develop the scene further."
    )


_BUILDERS: Dict[ProviderFamily, PayloadBuilder] = {
    ProviderFamily.SORA: SoraPayloadBuilder(),
    ProviderFamily.VEO: VeoPayloadBuilder(),
}


def builder_for(family: ProviderFamily) -> PayloadBuilder:
    """
    Get the payload builder for a provider family.

    Raises:
        ValueError: If the family has no builder
    """
    try:
        return _BUILDERS[family]
    except KeyError:
        raise ValueError(f"No payload builder for provider family: {family}")


def profile_for(family: ProviderFamily) -> FamilyProfile:
    """Get the timing profile for a provider family."""
    return FAMILY_PROFILES[family]
