"""Service error hierarchy.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, timeouts)
- PermanentError: Non-retryable errors (authentication, validation)
- GenerationError: Request-aborting failures of the generation pipeline,
  each carrying the HTTP status it is surfaced with
- PersistenceWarning: Non-fatal storage failure, logged and never surfaced
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (503)
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Configuration errors
    """

    pass


class GenerationError(ServiceError):
    """Base exception for failures that abort a generation request."""

    status_code: int = 500


class PromptValidationError(GenerationError):
    """Missing, blank or oversized prompt."""

    status_code = 400


class AuthError(GenerationError):
    """Request carries no authenticated user."""

    status_code = 401


class QuotaExceeded(GenerationError):
    """User reached the daily generation limit."""

    status_code = 403


class SubmissionFailed(GenerationError):
    """Provider rejected the creation call or returned unusable output."""

    pass


class JobFailed(GenerationError):
    """Provider reported the prediction as failed."""

    pass


class JobCanceled(GenerationError):
    """Prediction was canceled, by the provider or locally."""

    pass


class JobTimedOut(GenerationError):
    """Poll ceiling reached before the prediction finished."""

    pass


class PersistenceWarning(ServiceError):
    """Generation record or audit mirror could not be written."""

    pass
