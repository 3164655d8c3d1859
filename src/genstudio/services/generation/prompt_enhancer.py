"""Deterministic prompt enhancement for image and video models."""

IMAGE_PASSTHROUGH_LENGTH = 100
VIDEO_PASSTHROUGH_LENGTH = 60

ADVANCED_IMAGE_MODEL = "free-model-advanced"
IMAGE_MODELS = ("free-model-basic", ADVANCED_IMAGE_MODEL)

_VIDEO_STYLES = (
    ("anime", "anime style"),
    ("cartoon", "cartoon style"),
    ("realistic", "photorealistic"),
    ("cinematic", "cinematic"),
)
_VIDEO_SETTINGS = (
    ("space", "in outer space"),
    ("forest", "in a lush forest"),
    ("city", "in a bustling city"),
    ("beach", "on a beautiful beach"),
)
_VIDEO_TIMES = (
    ("night", "at night"),
    ("sunset", "during sunset"),
    ("morning", "in the morning"),
)
_VIDEO_MOTIONS = ("running", "flying", "swimming", "dancing")

_ASPECT_RATIOS = {
    "1024x768": "4:3",
    "768x1024": "3:4",
    "1024x1024": "1:1",
    "512x512": "1:1",
}


def enhance_image_prompt(prompt: str, model: str) -> str:
    """Append style and quality keywords for the selected image model tier.

    Prompts longer than 100 characters are treated as already detailed and
    returned unchanged.
    """
    if len(prompt) > IMAGE_PASSTHROUGH_LENGTH:
        return prompt

    style = ""
    quality = "high quality, detailed"
    if model == ADVANCED_IMAGE_MODEL:
        style = "professional photography, masterful composition, perfect lighting"
        quality = "ultra high definition, extremely detailed, 8k resolution, masterpiece"

    return ", ".join(part for part in (prompt, style, quality) if part).strip()


def _first_match(text: str, table) -> str:
    for keyword, phrase in table:
        if keyword in text:
            return phrase
    return ""


def enhance_video_prompt(prompt: str) -> str:
    """Build a cinematic description from keywords found in the prompt.

    Prompts longer than 60 characters are returned unchanged.
    """
    if len(prompt) > VIDEO_PASSTHROUGH_LENGTH:
        return prompt

    lowered = prompt.lower()
    style = _first_match(lowered, _VIDEO_STYLES) or "cinematic"
    setting = _first_match(lowered, _VIDEO_SETTINGS)
    time_of_day = _first_match(lowered, _VIDEO_TIMES)
    motion = next((m for m in _VIDEO_MOTIONS if m in lowered), "")

    parts = [style, prompt]
    parts.extend(part for part in (setting, time_of_day, motion) if part)
    parts.append("high quality, detailed, smooth motion, professional lighting, 4K resolution")
    return ", ".join(parts)


def resolution_to_aspect_ratio(resolution: str) -> str:
    """Map a WIDTHxHEIGHT resolution onto the provider's aspect ratio; default 1:1."""
    return _ASPECT_RATIOS.get(resolution, "1:1")


def image_prompt_tips() -> dict:
    return {
        "promptTips": {
            "styleOptions": ["realistic", "artistic", "fantasy", "abstract", "cinematic", "anime"],
            "subjectIdeas": [
                "landscape",
                "portrait",
                "still life",
                "architecture",
                "animals",
                "nature",
            ],
            "qualityModifiers": ["detailed", "high resolution", "professional", "masterpiece"],
            "examples": {
                "basic": "mountain landscape",
                "enhanced": enhance_image_prompt("mountain landscape", "free-model-basic"),
            },
            "modelTypes": list(IMAGE_MODELS),
        }
    }


def video_prompt_tips() -> dict:
    return {
        "promptTips": {
            "styleOptions": ["anime", "cartoon", "realistic", "cinematic"],
            "settingOptions": [keyword for keyword, _ in _VIDEO_SETTINGS],
            "timeOptions": [keyword for keyword, _ in _VIDEO_TIMES],
            "motionOptions": list(_VIDEO_MOTIONS),
            "examples": {
                "basic": "cat playing with yarn",
                "enhanced": enhance_video_prompt("cat playing with yarn"),
            },
        }
    }
