"""
Unit tests for the Videos API request schema.

Tests:
- Aspect ratio normalization and default
- Duration bounds
- Seed image precedence
- Chainable model detection
"""

import pytest
from pydantic import ValidationError

from chainreel_api.schemas.video import (
    VideoGenerateRequest,
    is_chainable_model,
    normalize_aspect_ratio,
)


class TestAspectRatio:
    """Tests for aspect ratio handling."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("16:9", "landscape"),
            ("9:16", "portrait"),
            ("1:1", "square"),
            ("Portrait", "portrait"),
            ("square", "square"),
            (None, "landscape"),
            ("", "landscape"),
            ("4:3", "landscape"),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_aspect_ratio(value) == expected

    def test_default_applied_when_omitted(self):
        req = VideoGenerateRequest(prompt="a fox", model="sora-2", seconds=20)
        assert req.aspect_ratio == "landscape"

    def test_ratio_string_normalized(self):
        req = VideoGenerateRequest(prompt="a fox", model="sora-2", seconds=20, aspect_ratio="9:16")
        assert req.aspect_ratio == "portrait"


class TestSeconds:
    """Tests for duration validation."""

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            VideoGenerateRequest(prompt="a fox", model="sora-2", seconds=0)

    def test_above_limit_rejected(self):
        with pytest.raises(ValidationError, match="at most 120"):
            VideoGenerateRequest(prompt="a fox", model="sora-2", seconds=121)

    def test_limit_accepted(self):
        assert VideoGenerateRequest(prompt="a fox", model="veo-3.1", seconds=120).seconds == 120

    def test_empty_prompt_rejected(self):
        with pytest.raises(ValidationError):
            VideoGenerateRequest(prompt="", model="sora-2", seconds=10)


class TestSeedImageInputs:
    """Tests for seed image selection."""

    def test_input_images_take_precedence(self):
        req = VideoGenerateRequest(
            prompt="p", model="sora-2", seconds=10,
            input_image="single", input_images=["a", "b"],
        )
        assert req.seed_image_inputs == ["a", "b"]

    def test_single_image_used_when_list_empty(self):
        req = VideoGenerateRequest(
            prompt="p", model="sora-2", seconds=10,
            input_image="single", input_images=[],
        )
        assert req.seed_image_inputs == ["single"]

    def test_no_images(self):
        req = VideoGenerateRequest(prompt="p", model="sora-2", seconds=10)
        assert req.seed_image_inputs == []


class TestChainableModel:
    """Tests for model family detection."""

    @pytest.mark.parametrize("model", ["sora-2", "sora-2-pro", "veo-3.1", "VEO-3.1-fast", " veo-3"])
    def test_chainable(self, model):
        assert is_chainable_model(model)

    @pytest.mark.parametrize("model", ["dall-e-3", "gpt-4o", "kling-1", "my-sora"])
    def test_not_chainable(self, model):
        assert not is_chainable_model(model)
