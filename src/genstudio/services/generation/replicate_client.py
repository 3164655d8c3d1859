"""Replicate predictions client with error classification."""

import asyncio
from typing import Any, Optional

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

from genstudio.models.job import GenerationJob, PredictionSnapshot
from genstudio.services.exceptions import PermanentError, SubmissionFailed, TransientError

logger = structlog.get_logger(__name__)


def classify_error(exception: Exception) -> TransientError | PermanentError:
    """Classify exception into retry category.

    Args:
        exception: Original exception from Replicate SDK or network layer

    Returns:
        Classified TransientError or PermanentError instance

    Classification rules:
        - Timeout errors → TransientError
        - 429 (rate limit) → TransientError
        - 502/503 (gateway / service unavailable) → TransientError
        - 401/403 (authentication) → PermanentError
        - Connection errors → TransientError
        - Other errors → PermanentError
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()

    if (
        isinstance(exception, (TimeoutError, httpx.TimeoutException))
        or "timeout" in error_message_lower
    ):
        return TransientError(f"Network timeout: {error_message}")

    if "429" in error_message or "rate limit" in error_message_lower:
        return TransientError(f"Rate limit exceeded: {error_message}")

    if (
        "502" in error_message
        or "503" in error_message
        or "service unavailable" in error_message_lower
        or "bad gateway" in error_message_lower
    ):
        return TransientError(f"Service unavailable: {error_message}")

    if (
        "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "authentication" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return PermanentError(f"Authentication failed: {error_message}")

    if isinstance(exception, (ConnectionError, OSError, httpx.TransportError)):
        return TransientError(f"Connection error: {error_message}")

    return PermanentError(f"Permanent error: {error_message}")


def to_snapshot(prediction: Any) -> PredictionSnapshot:
    """Convert a replicate Prediction (or an equivalent mapping) to a snapshot."""
    if isinstance(prediction, dict):
        data = prediction
    else:
        data = {
            field: getattr(prediction, field, None)
            for field in PredictionSnapshot.model_fields
        }

    def _as_str(value: Any) -> Optional[str]:
        return None if value is None else str(value)

    return PredictionSnapshot(
        id=str(data["id"]),
        status=str(data["status"]),
        output=data.get("output"),
        error=_as_str(data.get("error")),
        input=data.get("input") or {},
        urls=data.get("urls") or {},
        metrics=data.get("metrics") or {},
        model=data.get("model"),
        version=data.get("version"),
        created_at=_as_str(data.get("created_at")),
        completed_at=_as_str(data.get("completed_at")),
    )


class ReplicateProvider:
    """Submits predictions and fetches their status through the Replicate SDK.

    The SDK is synchronous; calls run in a worker thread so the event loop keeps
    serving other requests while a prediction is created or queried.
    """

    def __init__(self, api_token: str, client: Any = None):
        """Initialize provider.

        Args:
            api_token: Replicate API authentication token
            client: Pre-built replicate.Client (tests inject a fake here)
        """
        self.api_token = api_token
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = replicate.Client(api_token=self.api_token)
        return self._client

    async def submit(self, model: str, input: dict[str, Any]) -> GenerationJob:
        """Issue exactly one prediction creation call.

        Args:
            model: "owner/name" model identifier, or a bare version hash
            input: Model input (prompt, aspect_ratio, num_outputs, ...)

        Returns:
            Initial GenerationJob carrying the provider-reported status

        Raises:
            SubmissionFailed: Missing token, provider rejection or network error
        """
        if not self.api_token and self._client is None:
            raise SubmissionFailed("REPLICATE_API_TOKEN not configured")

        if "/" in model:
            create_kwargs: dict[str, Any] = {"model": model, "input": input}
        else:
            create_kwargs = {"version": model, "input": input}

        try:
            prediction = await asyncio.to_thread(self.client.predictions.create, **create_kwargs)
        except (ReplicateAPIError, httpx.HTTPError, ConnectionError, OSError) as e:
            logger.error(
                "generation.submit.failed",
                model=model,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise SubmissionFailed(str(e)) from e
        except Exception as e:
            logger.error(
                "generation.submit.failed",
                model=model,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise SubmissionFailed(f"Unexpected error: {e}") from e

        try:
            job = GenerationJob.from_snapshot(to_snapshot(prediction))
        except (KeyError, ValueError) as e:
            raise SubmissionFailed(f"Malformed prediction from provider: {e}") from e

        logger.info("generation.submitted", job_id=job.job_id, model=model, status=job.status.value)
        return job

    async def get_status(self, job_id: str) -> PredictionSnapshot:
        """Fetch the current state of a prediction.

        Raises:
            TransientError: Network timeout, rate limit, service unavailable
            PermanentError: Authentication or other non-retryable failure
        """
        try:
            prediction = await asyncio.to_thread(self.client.predictions.get, job_id)
        except (ReplicateAPIError, httpx.HTTPError, ConnectionError, OSError) as e:
            raise classify_error(e) from e
        except Exception as e:
            raise PermanentError(f"Unexpected error: {e}") from e

        try:
            return to_snapshot(prediction)
        except (KeyError, ValueError) as e:
            raise PermanentError(f"Malformed prediction from provider: {e}") from e
