"""Prediction polling loop.

The loop is driven by two injected callables, the status fetcher and the sleep
function, so tests run it without real delays. State changes go through
`apply_status`, a pure function of (job, provider snapshot).

Timing follows a fixed delay between status queries. The first query is issued
right after submission, so a job that succeeds on query N has waited
(N - 1) x interval. The ceiling bounds total wait to
(max_attempts - 1) x interval plus the bounded transient-retry sleeps.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from genstudio.models.job import GenerationJob, JobStatus, PredictionSnapshot
from genstudio.services.exceptions import JobCanceled, JobFailed, JobTimedOut, TransientError

logger = structlog.get_logger(__name__)

StatusFetcher = Callable[[str], Awaitable[PredictionSnapshot]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-delay polling parameters."""

    max_attempts: int = 60
    interval_seconds: float = 5.0
    transient_retries: int = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")
        if self.transient_retries < 0:
            raise ValueError("transient_retries cannot be negative")


def apply_status(job: GenerationJob, snapshot: PredictionSnapshot) -> GenerationJob:
    """Return the job advanced by one provider status response."""
    return job.with_snapshot(snapshot)


async def _fetch_with_retries(
    job_id: str,
    fetch_status: StatusFetcher,
    policy: PollPolicy,
    sleep: Sleeper,
) -> PredictionSnapshot:
    """Fetch once, retrying TransientError at most `policy.transient_retries` times.

    Retries belong to the same attempt. Any other exception propagates at once.
    """
    retry = 0
    while True:
        try:
            return await fetch_status(job_id)
        except TransientError as e:
            if retry >= policy.transient_retries:
                raise
            retry += 1
            logger.warning(
                "generation.poll.retry",
                job_id=job_id,
                retry=retry,
                max_retries=policy.transient_retries,
                error_message=str(e),
            )
            await sleep(policy.interval_seconds)


async def poll_job(
    job: GenerationJob,
    fetch_status: StatusFetcher,
    policy: PollPolicy = PollPolicy(),
    *,
    sleep: Sleeper = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None,
) -> GenerationJob:
    """Query the provider until the job reaches a terminal state.

    Args:
        job: Job as returned by the submitter
        fetch_status: Coroutine returning the provider snapshot for a job id
        policy: Attempt ceiling, fixed delay and transient retry budget
        sleep: Delay function (asyncio.sleep outside tests)
        cancel_event: When set, the loop stops before its next query and the
            job becomes canceled

    Returns:
        Terminal job: succeeded, failed, canceled or timed_out. A job that is
        already terminal is returned unchanged without any query.

    Raises:
        TransientError: Status check kept failing after the retry budget
        PermanentError: Non-retryable status check failure
    """
    if job.is_terminal:
        logger.debug("generation.poll.skipped", job_id=job.job_id, status=job.status.value)
        return job

    logger.info(
        "generation.poll.started",
        job_id=job.job_id,
        status=job.status.value,
        max_attempts=policy.max_attempts,
        interval_seconds=policy.interval_seconds,
    )

    while job.attempts < policy.max_attempts:
        if job.attempts > 0:
            await sleep(policy.interval_seconds)

        if cancel_event is not None and cancel_event.is_set():
            job = job.mark_canceled("Prediction canceled by caller")
            logger.warning("generation.poll.canceled", job_id=job.job_id, attempts=job.attempts)
            return job

        snapshot = await _fetch_with_retries(job.job_id, fetch_status, policy, sleep)
        job = apply_status(job, snapshot)

        logger.debug(
            "generation.poll.attempt",
            job_id=job.job_id,
            attempt=job.attempts,
            status=job.status.value,
        )

        if job.is_terminal:
            logger.info(
                "generation.poll.finished",
                job_id=job.job_id,
                status=job.status.value,
                attempts=job.attempts,
            )
            return job

    job = job.mark_timed_out()
    logger.error("generation.poll.timed_out", job_id=job.job_id, attempts=job.attempts)
    return job


def raise_for_terminal(job: GenerationJob) -> GenerationJob:
    """Raise the matching GenerationError unless the job succeeded.

    The provider's error text is carried unchanged.

    Raises:
        JobFailed: status is failed
        JobCanceled: status is canceled
        JobTimedOut: status is timed_out
        ValueError: job is not terminal yet
    """
    if job.status == JobStatus.SUCCEEDED:
        return job
    if job.status == JobStatus.FAILED:
        raise JobFailed(f"Prediction failed: {job.error or 'Unknown error'}")
    if job.status == JobStatus.CANCELED:
        raise JobCanceled(f"Prediction canceled: {job.error or 'Unknown error'}")
    if job.status == JobStatus.TIMED_OUT:
        raise JobTimedOut(job.error or "Prediction timed out")
    raise ValueError(f"Job {job.job_id} is not terminal (status={job.status.value})")
