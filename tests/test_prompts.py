"""Prompt validation and enhancement tests."""

import pytest

from genstudio.services.exceptions import PromptValidationError
from genstudio.services.generation.prompt_enhancer import (
    enhance_image_prompt,
    enhance_video_prompt,
    image_prompt_tips,
    resolution_to_aspect_ratio,
    video_prompt_tips,
)
from genstudio.services.generation.prompt_validator import validate_prompt


class TestValidatePrompt:
    def test_valid_prompt_unchanged(self):
        assert validate_prompt("  a cat  ") == "  a cat  "

    @pytest.mark.parametrize("prompt", [None, "", "   \n\t"])
    def test_missing_or_blank(self, prompt):
        with pytest.raises(PromptValidationError, match="Prompt is required"):
            validate_prompt(prompt)

    def test_non_string(self):
        with pytest.raises(PromptValidationError, match="must be a string"):
            validate_prompt(123)

    def test_length_limit(self):
        assert validate_prompt("a" * 1000) == "a" * 1000
        with pytest.raises(PromptValidationError, match="maximum length of 1000"):
            validate_prompt("a" * 1001)

    def test_status_code(self):
        assert PromptValidationError.status_code == 400


class TestImageEnhancement:
    def test_basic_model(self):
        assert (
            enhance_image_prompt("sunset over mountains", "free-model-basic")
            == "sunset over mountains, high quality, detailed"
        )

    def test_advanced_model(self):
        enhanced = enhance_image_prompt("sunset over mountains", "free-model-advanced")

        assert enhanced.startswith("sunset over mountains, professional photography")
        assert enhanced.endswith("8k resolution, masterpiece")

    def test_long_prompt_passthrough(self):
        prompt = "x" * 101
        assert enhance_image_prompt(prompt, "free-model-advanced") == prompt

    def test_deterministic(self):
        assert enhance_image_prompt("cat", "free-model-basic") == enhance_image_prompt(
            "cat", "free-model-basic"
        )


class TestVideoEnhancement:
    def test_keywords_detected(self):
        enhanced = enhance_video_prompt("anime cat flying in space at night")

        assert enhanced.startswith("anime style, anime cat flying in space at night")
        assert "in outer space" in enhanced
        assert "at night" in enhanced
        assert "flying" in enhanced
        assert enhanced.endswith("4K resolution")

    def test_default_style_is_cinematic(self):
        assert enhance_video_prompt("cat playing with yarn").startswith(
            "cinematic, cat playing with yarn"
        )

    def test_long_prompt_passthrough(self):
        prompt = "a" * 61
        assert enhance_video_prompt(prompt) == prompt


@pytest.mark.parametrize(
    "resolution,expected",
    [
        ("1024x768", "4:3"),
        ("768x1024", "3:4"),
        ("1024x1024", "1:1"),
        ("512x512", "1:1"),
        ("999x1", "1:1"),
    ],
)
def test_resolution_to_aspect_ratio(resolution, expected):
    assert resolution_to_aspect_ratio(resolution) == expected


def test_tips_include_enhanced_examples():
    image_tips = image_prompt_tips()["promptTips"]
    video_tips = video_prompt_tips()["promptTips"]

    assert image_tips["examples"]["enhanced"] == "mountain landscape, high quality, detailed"
    assert "free-model-advanced" in image_tips["modelTypes"]
    assert video_tips["motionOptions"] == ["running", "flying", "swimming", "dancing"]
