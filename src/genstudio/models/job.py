"""GenerationJob - ephemeral view of one provider prediction.

A job lives for exactly one request: created from the submission response,
advanced by the poller, discarded once the result is persisted or the request
fails. It is never stored as its own row.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Prediction lifecycle status.

    TIMED_OUT is synthesized locally when the poll ceiling is reached; the
    provider never reports it.
    """

    QUEUED = "queued"
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED, JobStatus.TIMED_OUT}
)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid job state transition."""

    pass


class PredictionSnapshot(BaseModel):
    """Provider view of a prediction, as returned by create/get calls."""

    id: str
    status: str
    output: Any = None
    error: Optional[str] = None
    input: dict[str, Any] = Field(default_factory=dict)
    urls: dict[str, str] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
    model: Optional[str] = None
    version: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


class GenerationJob(BaseModel):
    """Immutable snapshot of a job; transitions return a new instance."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(min_length=1)
    status: JobStatus
    input: dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    error: Optional[str] = None
    attempts: int = Field(default=0, ge=0)

    # Provider metadata kept for the audit mirror
    urls: dict[str, str] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
    model: Optional[str] = None
    version: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: PredictionSnapshot) -> "GenerationJob":
        """Build the initial job from a submission response (attempts=0)."""
        status = parse_status(snapshot.status)
        return cls(
            job_id=snapshot.id,
            status=status,
            input=snapshot.input,
            output=snapshot.output if status == JobStatus.SUCCEEDED else None,
            error=snapshot.error if status in (JobStatus.FAILED, JobStatus.CANCELED) else None,
            urls=snapshot.urls,
            metrics=snapshot.metrics,
            model=snapshot.model,
            version=snapshot.version,
            created_at=snapshot.created_at,
            completed_at=snapshot.completed_at,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def with_snapshot(self, snapshot: PredictionSnapshot) -> "GenerationJob":
        """Apply one status query result, counting it as an attempt.

        Raises:
            InvalidStateTransition: If the job is already terminal or the
                snapshot belongs to another prediction
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot apply provider status to job {self.job_id} "
                f"in terminal state {self.status.value}."
            )
        if snapshot.id != self.job_id:
            raise InvalidStateTransition(
                f"Snapshot for prediction {snapshot.id} cannot update job {self.job_id}."
            )

        status = parse_status(snapshot.status)
        return self.model_copy(
            update={
                "status": status,
                "output": snapshot.output if status == JobStatus.SUCCEEDED else None,
                "error": (
                    snapshot.error
                    if status in (JobStatus.FAILED, JobStatus.CANCELED)
                    else None
                ),
                "attempts": self.attempts + 1,
                "urls": snapshot.urls or self.urls,
                "metrics": snapshot.metrics or self.metrics,
                "completed_at": snapshot.completed_at,
            }
        )

    def mark_timed_out(self) -> "GenerationJob":
        """Transition from a non-terminal state to timed_out.

        Raises:
            InvalidStateTransition: If current status is already terminal
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark timed_out from terminal state {self.status.value}."
            )
        return self.model_copy(
            update={
                "status": JobStatus.TIMED_OUT,
                "output": None,
                "error": f"Prediction timed out after {self.attempts} status checks",
            }
        )

    def mark_canceled(self, reason: str) -> "GenerationJob":
        """Transition from a non-terminal state to canceled (local cancellation).

        Raises:
            InvalidStateTransition: If current status is already terminal
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark canceled from terminal state {self.status.value}."
            )
        return self.model_copy(
            update={"status": JobStatus.CANCELED, "output": None, "error": reason}
        )


def parse_status(raw: str) -> JobStatus:
    """Map a provider status string onto JobStatus.

    Raises:
        ValueError: If the provider reports an unknown status or claims timed_out
    """
    try:
        status = JobStatus(raw)
    except ValueError:
        raise ValueError(f"Unknown prediction status from provider: {raw!r}") from None
    if status == JobStatus.TIMED_OUT:
        raise ValueError("Provider cannot report the local timed_out status")
    return status
