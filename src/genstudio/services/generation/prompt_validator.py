"""Prompt validation for generation requests.

Validates text prompts before they are enhanced and sent to Replicate.
"""

from genstudio.services.exceptions import PromptValidationError

MAX_PROMPT_LENGTH = 1000


def validate_prompt(prompt: object) -> str:
    """Validate prompt text for generation.

    Args:
        prompt: Raw prompt from the request body

    Returns:
        Validated prompt (unchanged if valid)

    Raises:
        PromptValidationError: If prompt is missing, not a string, blank, or
            exceeds 1000 characters
    """
    if prompt is None or prompt == "":
        raise PromptValidationError("Prompt is required")

    if not isinstance(prompt, str):
        raise PromptValidationError(f"Prompt must be a string, got {type(prompt).__name__}")

    if not prompt.strip():
        raise PromptValidationError("Prompt is required")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise PromptValidationError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt
