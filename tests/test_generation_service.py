"""GenerationService pipeline tests.

Runs validate → enhance → submit → poll → persist against the scripted
provider and an in-memory database.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from genstudio.core.config import Settings
from genstudio.models.generation import ImageGeneration, MediaKind
from genstudio.services.exceptions import (
    JobFailed,
    JobTimedOut,
    PromptValidationError,
    QuotaExceeded,
    SubmissionFailed,
    TransientError,
)
from genstudio.services.generation.gate import ConcurrencyGate
from genstudio.services.generation.service import (
    GenerationParams,
    GenerationService,
    image_spec,
    video_spec,
)

SETTINGS = Settings(APP_ENV="test")  # type: ignore[call-arg]
IMAGE_PARAMS = GenerationParams(model="free-model-basic", resolution="1024x768", amount=2)


@pytest.mark.asyncio
async def test_image_generation_end_to_end(generation_service, provider, fake_sleep, uow_factory):
    urls = ["https://cdn.test/0.png", "https://cdn.test/1.png"]
    provider.script(["processing", "succeeded"], output=urls)

    result = await generation_service.generate(
        image_spec(SETTINGS), "user_1", "sunset over mountains", IMAGE_PARAMS
    )

    assert result.urls == urls
    assert result.used_prompt == "sunset over mountains, high quality, detailed"
    assert result.attempts == 2
    assert len(result.record_ids) == 2
    assert result.mirror_file is not None
    assert fake_sleep.calls == [5.0]

    model, provider_input = provider.submitted[0]
    assert model == "minimax/image-01"
    assert provider_input == {
        "prompt": "sunset over mountains, high quality, detailed",
        "aspect_ratio": "4:3",
        "num_outputs": 2,
    }

    async with await uow_factory() as uow:
        assert len(await uow.images.list_by_user("user_1")) == 2


@pytest.mark.asyncio
async def test_video_generation_uses_version_and_string_output(generation_service, provider):
    provider.script(["succeeded"], output="https://cdn.test/v.mp4")

    result = await generation_service.generate(
        video_spec(SETTINGS),
        "user_1",
        "cat playing with yarn",
        GenerationParams(model=SETTINGS.video_model_version),
    )

    assert result.kind == MediaKind.VIDEO
    assert result.urls == ["https://cdn.test/v.mp4"]
    assert provider.submitted[0][0] == SETTINGS.video_model_version
    assert provider.submitted[0][1]["prompt"].startswith("cinematic, cat playing with yarn")


@pytest.mark.asyncio
async def test_invalid_prompt_never_reaches_provider(generation_service, provider):
    with pytest.raises(PromptValidationError):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "   ", IMAGE_PARAMS)

    assert provider.submitted == []


@pytest.mark.asyncio
async def test_submission_failure_propagates(generation_service, provider):
    provider.submit_error = SubmissionFailed("provider rejected input")

    with pytest.raises(SubmissionFailed):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    assert provider.status_calls == 0
    assert generation_service.gate.in_flight == 0


@pytest.mark.asyncio
async def test_timeout_raises_job_timed_out(generation_service, provider, uow_factory):
    provider.script(["processing"])

    with pytest.raises(JobTimedOut, match="timed out"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    assert provider.status_calls == 60
    async with await uow_factory() as uow:
        assert await uow.images.list_by_user("user_1") == []


@pytest.mark.asyncio
async def test_failed_prediction_raises_job_failed(generation_service, provider):
    provider.script(["failed"], error="NSFW content detected")

    with pytest.raises(JobFailed, match="NSFW content detected"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)


@pytest.mark.asyncio
async def test_exhausted_status_checks_become_job_failed(generation_service, provider):
    provider.status_errors = [TransientError("503")] * 3

    with pytest.raises(JobFailed, match="Status check failed"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)


@pytest.mark.asyncio
async def test_unknown_poll_status_raises_job_failed(generation_service, provider, uow_factory):
    provider.script(["processing", "aborted"])

    with pytest.raises(JobFailed, match="aborted"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    assert generation_service.gate.in_flight == 0
    async with await uow_factory() as uow:
        assert await uow.images.list_by_user("user_1") == []


@pytest.mark.asyncio
async def test_mismatched_snapshot_raises_job_failed(generation_service, provider):
    provider.script(["processing"])
    scripted_get_status = provider.get_status

    async def other_prediction(job_id):
        snapshot = await scripted_get_status(job_id)
        return snapshot.model_copy(update={"id": "pred-other"})

    provider.get_status = other_prediction

    with pytest.raises(JobFailed, match="cannot update job pred-123"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)


@pytest.mark.asyncio
async def test_malformed_output_raises_submission_failed(generation_service, provider):
    provider.script(["succeeded"], output={"image": "not-a-list"})

    with pytest.raises(SubmissionFailed, match="Unexpected output format"):
        await generation_service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)


@pytest.mark.asyncio
async def test_storage_failure_still_returns_urls(provider, broken_uow_factory, fake_sleep):
    service = GenerationService(
        provider=provider,  # type: ignore[arg-type]
        uow_factory=broken_uow_factory,
        gate=ConcurrencyGate(1),
        sleep=fake_sleep,
    )
    provider.script(["succeeded"], output=["https://cdn.test/0.png"])

    result = await service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    assert result.urls == ["https://cdn.test/0.png"]
    assert result.record_ids == []
    assert result.mirror_file is None


@pytest.mark.asyncio
async def test_daily_quota(provider, uow_factory, fake_sleep):
    service = GenerationService(
        provider=provider,  # type: ignore[arg-type]
        uow_factory=uow_factory,
        gate=ConcurrencyGate(1),
        daily_limit=1,
        sleep=fake_sleep,
    )
    async with await uow_factory() as uow:
        await uow.images.add(
            ImageGeneration(
                user_id="user_1",
                prompt="earlier",
                model="free-model-basic",
                image_url="https://cdn.test/earlier.png",
                created_at=datetime.now(timezone.utc),
            )
        )

    with pytest.raises(QuotaExceeded):
        await service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)
    assert provider.submitted == []

    result = await service.generate(image_spec(SETTINGS), "user_2", "cat", IMAGE_PARAMS)
    assert result.urls


@pytest.mark.asyncio
async def test_concurrent_requests_cannot_exceed_daily_quota(provider, uow_factory, fake_sleep):
    service = GenerationService(
        provider=provider,  # type: ignore[arg-type]
        uow_factory=uow_factory,
        gate=ConcurrencyGate(4),
        daily_limit=1,
        sleep=fake_sleep,
    )
    provider.script(["processing", "succeeded"], output=["https://cdn.test/0.png"])

    results = await asyncio.gather(
        *(service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS) for _ in range(3)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, QuotaExceeded) for r in results) == 2
    assert [r.urls for r in results if not isinstance(r, BaseException)] == [
        ["https://cdn.test/0.png"]
    ]
    assert len(provider.submitted) == 1
    async with await uow_factory() as uow:
        assert len(await uow.images.list_by_user("user_1")) == 1


@pytest.mark.asyncio
async def test_failed_generation_releases_quota_reservation(provider, uow_factory, fake_sleep):
    service = GenerationService(
        provider=provider,  # type: ignore[arg-type]
        uow_factory=uow_factory,
        gate=ConcurrencyGate(1),
        daily_limit=1,
        sleep=fake_sleep,
    )
    provider.script(["failed"], error="NSFW content detected")

    with pytest.raises(JobFailed):
        await service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    provider.script(["succeeded"], output=["https://cdn.test/0.png"])
    result = await service.generate(image_spec(SETTINGS), "user_1", "cat", IMAGE_PARAMS)

    assert result.urls == ["https://cdn.test/0.png"]
    assert len(result.record_ids) == 1
    assert service._reserved == {}


def test_from_settings_applies_configuration(provider, uow_factory):
    settings = Settings(  # type: ignore[call-arg]
        APP_ENV="test",
        POLL_MAX_ATTEMPTS=10,
        POLL_INTERVAL_SECONDS=1.5,
        MAX_INFLIGHT_JOBS=3,
        MIRROR_ENABLED=False,
    )

    service = GenerationService.from_settings(settings, provider, uow_factory)

    assert service.policy.max_attempts == 10
    assert service.policy.interval_seconds == 1.5
    assert service.gate.limit == 3
    assert service.mirror is None
