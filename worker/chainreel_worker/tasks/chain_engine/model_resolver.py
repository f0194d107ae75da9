"""
Model Name Resolver

Maps a requested base model plus request shape onto the concrete model
string a provider expects.

VEO models encode orientation, speed and reference-image support as name
suffixes:

    veo-3.1                  portrait, text only
    veo-3.1-landscape        landscape
    veo-3.1-landscape-fast   landscape, fast tier
    veo-3.1-landscape-fl     landscape, frame-locked (accepts reference images)

The provider rejects reference images on models without ``-fl``, so the
suffix is always added when an image is attached. Square requests map to the
unmarked portrait form: there is no square VEO model.

SORA models take orientation as a payload field and accept reference
images natively, so their names pass through untouched.
"""

from typing import Optional

from .models import AspectRatio, ProviderFamily, ResolvedModel

LANDSCAPE_SUFFIX = "landscape"
PORTRAIT_SUFFIX = "portrait"
FAST_SUFFIX = "fast"
FRAME_LOCKED_SUFFIX = "fl"

# Tokens stripped before rebuilding a VEO model name
_VEO_SUFFIX_TOKENS = {LANDSCAPE_SUFFIX, PORTRAIT_SUFFIX, FAST_SUFFIX, FRAME_LOCKED_SUFFIX}


def classify_family(base_model: str) -> Optional[ProviderFamily]:
    """
    Classify a model identifier into a provider family.

    Returns:
        ProviderFamily, or None if the model cannot be chained

    Example:
        >>> classify_family("veo-3.1-fast")
        <ProviderFamily.VEO: 'veo'>
        >>> classify_family("dall-e-3") is None
        True
    """
    name = (base_model or "").strip().lower()
    if name.startswith("sora"):
        return ProviderFamily.SORA
    if name.startswith("veo"):
        return ProviderFamily.VEO
    return None


def is_fast_model(base_model: str) -> bool:
    """Fast mode is requested by naming a fast model."""
    return FAST_SUFFIX in (base_model or "").lower()


def strip_veo_suffixes(base_model: str) -> str:
    """
    Recover the root of a VEO model name.

    Example:
        >>> strip_veo_suffixes("veo-3.1-landscape-fast-fl")
        'veo-3.1'
    """
    tokens = base_model.split("-")
    kept = [t for t in tokens if t.lower() not in _VEO_SUFFIX_TOKENS]
    return "-".join(kept)


def resolve_model(
    base_model: str,
    aspect_ratio: AspectRatio,
    fast_requested: bool,
    has_reference_image: bool,
) -> ResolvedModel:
    """
    Resolve the concrete provider model for one segment.

    Pure and idempotent: feeding the resolved name back in with the same
    arguments yields the same result.

    Args:
        base_model: Model identifier as requested by the client
        aspect_ratio: Requested orientation
        fast_requested: Whether the fast tier was requested
        has_reference_image: Whether the segment carries a reference image

    Returns:
        ResolvedModel with the model string and its reference-image capability

    Example:
        >>> resolve_model("veo-3.1", AspectRatio.LANDSCAPE, True, True).model
        'veo-3.1-landscape-fast-fl'
    """
    family = classify_family(base_model)

    if family == ProviderFamily.VEO:
        name = strip_veo_suffixes(base_model)
        if aspect_ratio == AspectRatio.LANDSCAPE:
            name += f"-{LANDSCAPE_SUFFIX}"
        # Portrait is the unmarked default; square settles for portrait too.
        if fast_requested:
            name += f"-{FAST_SUFFIX}"
        if has_reference_image:
            name += f"-{FRAME_LOCKED_SUFFIX}"
        return ResolvedModel(
            model=name,
            family=family,
            supports_reference_image=has_reference_image,
        )

    return ResolvedModel(
        model=base_model,
        family=family,
        supports_reference_image=family == ProviderFamily.SORA,
    )
