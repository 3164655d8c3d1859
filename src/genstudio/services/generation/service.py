"""Generation pipeline: validate → enhance → submit → poll → persist.

One call handles exactly one prediction. Image and video requests share the
pipeline and differ only in their MediaSpec.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Optional
from uuid import UUID

import structlog

from genstudio.core.config import Settings
from genstudio.models.generation import MediaKind
from genstudio.models.job import GenerationJob, InvalidStateTransition
from genstudio.services.exceptions import (
    JobFailed,
    PermanentError,
    QuotaExceeded,
    TransientError,
)
from genstudio.services.generation.gate import ConcurrencyGate
from genstudio.services.generation.persister import (
    GenerationRequest,
    MetadataMirror,
    MirrorFile,
    ResultPersister,
    UowFactory,
    normalize_output,
)
from genstudio.services.generation.poller import PollPolicy, Sleeper, poll_job, raise_for_terminal
from genstudio.services.generation.prompt_enhancer import (
    enhance_image_prompt,
    enhance_video_prompt,
    resolution_to_aspect_ratio,
)
from genstudio.services.generation.prompt_validator import validate_prompt
from genstudio.services.generation.replicate_client import ReplicateProvider

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """User-selected generation options."""

    model: str
    resolution: Optional[str] = None
    amount: int = 1


@dataclass(frozen=True)
class MediaSpec:
    """How one media kind maps onto a provider model."""

    kind: MediaKind
    provider_model: str
    enhance: Callable[[str, GenerationParams], str]
    build_input: Callable[[str, GenerationParams], dict[str, Any]]


def _image_input(prompt: str, params: GenerationParams) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "aspect_ratio": resolution_to_aspect_ratio(params.resolution or ""),
        "num_outputs": params.amount,
    }


def _video_input(prompt: str, params: GenerationParams) -> dict[str, Any]:
    return {"prompt": prompt}


def image_spec(settings: Settings) -> MediaSpec:
    return MediaSpec(
        kind=MediaKind.IMAGE,
        provider_model=settings.image_model,
        enhance=lambda prompt, params: enhance_image_prompt(prompt, params.model),
        build_input=_image_input,
    )


def video_spec(settings: Settings) -> MediaSpec:
    return MediaSpec(
        kind=MediaKind.VIDEO,
        provider_model=settings.video_model_version,
        enhance=lambda prompt, params: enhance_video_prompt(prompt),
        build_input=_video_input,
    )


@dataclass
class GenerationResult:
    """Outcome handed back to the HTTP layer."""

    kind: MediaKind
    job_id: str
    urls: list[str]
    used_prompt: str
    model: str
    resolution: Optional[str]
    attempts: int
    record_ids: list[UUID] = field(default_factory=list)
    mirror_file: Optional[MirrorFile] = None


class GenerationService:
    """Runs generation requests against the provider within the in-flight gate."""

    def __init__(
        self,
        provider: ReplicateProvider,
        uow_factory: UowFactory,
        gate: ConcurrencyGate,
        policy: PollPolicy = PollPolicy(),
        *,
        mirror: Optional[MetadataMirror] = None,
        daily_limit: int = 0,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize service.

        Args:
            provider: Prediction submitter and status source
            uow_factory: Factory for Unit of Work instances (records, quota)
            gate: Process-wide in-flight job limit
            policy: Poll ceiling, fixed delay, transient retry budget
            mirror: Audit JSON writer, None to disable
            daily_limit: Generations per user per UTC day, 0 for unlimited
            sleep: Delay function used by the poll loop
        """
        self.provider = provider
        self.uow_factory = uow_factory
        self.gate = gate
        self.policy = policy
        self.mirror = mirror
        self.daily_limit = daily_limit
        self.sleep = sleep
        self.persister = ResultPersister(uow_factory)
        # Per-user count of in-flight generations holding a quota reservation
        self._reserved: dict[str, int] = {}
        self._quota_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, provider: ReplicateProvider, uow_factory: UowFactory
    ) -> "GenerationService":
        return cls(
            provider=provider,
            uow_factory=uow_factory,
            gate=ConcurrencyGate(settings.max_inflight_jobs),
            policy=PollPolicy(
                max_attempts=settings.poll_max_attempts,
                interval_seconds=settings.poll_interval_seconds,
                transient_retries=settings.poll_transient_retries,
            ),
            mirror=MetadataMirror(settings.mirror_dir) if settings.mirror_enabled else None,
            daily_limit=settings.daily_generation_limit,
        )

    async def _count_today(self, user_id: str) -> Optional[int]:
        """Records stored for the user since UTC midnight, None if the query fails."""
        start_of_day = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        try:
            async with await self.uow_factory() as uow:
                used = await uow.images.count_since(user_id, start_of_day)
                used += await uow.videos.count_since(user_id, start_of_day)
        except Exception as e:
            logger.warning(
                "generation.quota.check_failed",
                user_id=user_id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return None
        return used

    @asynccontextmanager
    async def _quota_reservation(self, user_id: str) -> AsyncIterator[None]:
        """Hold one unit of the user's daily quota while a generation runs.

        Stored records and reservations held by in-flight requests both count
        against the limit, so concurrent requests cannot overshoot it. A failing
        count query is logged and the request proceeds.

        Raises:
            QuotaExceeded: Stored plus in-flight generations reach the limit
        """
        if self.daily_limit <= 0:
            yield
            return

        async with self._quota_lock:
            used = await self._count_today(user_id)
            reserved = self._reserved.get(user_id, 0)
            if used is not None and used + reserved >= self.daily_limit:
                logger.info(
                    "generation.quota.exceeded", user_id=user_id, used=used, in_flight=reserved
                )
                raise QuotaExceeded(
                    f"Daily generation limit of {self.daily_limit} reached. "
                    "Upgrade your plan to continue."
                )
            self._reserved[user_id] = reserved + 1

        try:
            yield
        finally:
            remaining = self._reserved[user_id] - 1
            if remaining:
                self._reserved[user_id] = remaining
            else:
                del self._reserved[user_id]

    async def generate(
        self,
        spec: MediaSpec,
        user_id: str,
        prompt: Any,
        params: GenerationParams,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Run one generation end to end.

        Raises:
            PromptValidationError: Prompt missing, blank or too long
            QuotaExceeded: Daily limit reached
            SubmissionFailed: Provider rejected creation or returned malformed output
            JobFailed: Provider reported failure, or status checks kept failing or
                returned an unusable status
            JobCanceled: Prediction canceled
            JobTimedOut: Poll ceiling reached
        """
        start_time = time.time()
        prompt = validate_prompt(prompt)

        async with self._quota_reservation(user_id):
            job, request, urls, record_ids = await self._run(
                spec, user_id, prompt, params, cancel_event
            )

        mirror_file = None
        if self.mirror is not None:
            mirror_file = await asyncio.to_thread(self.mirror.write, job, request, urls)

        logger.info(
            "generation.succeeded",
            kind=spec.kind.value,
            job_id=job.job_id,
            url_count=len(urls),
            attempts=job.attempts,
            duration_seconds=time.time() - start_time,
        )

        return GenerationResult(
            kind=spec.kind,
            job_id=job.job_id,
            urls=urls,
            used_prompt=request.enhanced_prompt,
            model=params.model,
            resolution=params.resolution,
            attempts=job.attempts,
            record_ids=record_ids,
            mirror_file=mirror_file,
        )

    async def _run(
        self,
        spec: MediaSpec,
        user_id: str,
        prompt: str,
        params: GenerationParams,
        cancel_event: Optional[asyncio.Event],
    ) -> tuple[GenerationJob, GenerationRequest, list[str], list[UUID]]:
        """Enhance, then submit, poll and persist inside one gate slot."""
        enhanced_prompt = spec.enhance(prompt, params)
        request = GenerationRequest(
            kind=spec.kind,
            user_id=user_id,
            prompt=prompt,
            enhanced_prompt=enhanced_prompt,
            model=params.model,
            resolution=params.resolution,
            aspect_ratio=(
                resolution_to_aspect_ratio(params.resolution or "")
                if spec.kind == MediaKind.IMAGE
                else None
            ),
        )

        logger.info(
            "generation.started",
            kind=spec.kind.value,
            user_id=user_id,
            model=params.model,
            resolution=params.resolution,
        )

        async with self.gate.slot():
            job = await self.provider.submit(
                spec.provider_model, spec.build_input(enhanced_prompt, params)
            )
            try:
                job = await poll_job(
                    job,
                    self.provider.get_status,
                    self.policy,
                    sleep=self.sleep,
                    cancel_event=cancel_event,
                )
            except (TransientError, PermanentError, InvalidStateTransition, ValueError) as e:
                # ValueError: provider reported a status outside the known set
                logger.error(
                    "generation.poll.failed",
                    job_id=job.job_id,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                raise JobFailed(f"Status check failed for prediction {job.job_id}: {e}") from e

            raise_for_terminal(job)
            urls = normalize_output(job.output)
            record_ids = await self.persister.persist(job, request, urls)

        return job, request, urls, record_ids
