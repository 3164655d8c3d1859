"""Image and video generation API endpoints.

Endpoints:
- POST /api/image - Generate images from a prompt
- POST /api/video - Generate a video from a prompt
- OPTIONS /api/image, /api/video - Prompt writing tips
- GET /api/image/data, /api/video/data - Mirrored JSON blobs (audit trail)
- GET /api/image/history - Caller's stored images, newest first
- GET /api/video/user-videos - Caller's stored videos, newest first

Failures surface as `{"success": false, "message": ...}` through the
GenerationError handler registered in the app factory.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from genstudio.api.dependencies import (
    get_current_user_id,
    get_generation_service,
    get_mirror,
    get_settings,
    get_uow_factory,
)
from genstudio.core.config import Settings
from genstudio.models.generation import ImageGeneration, MediaKind, VideoGeneration
from genstudio.services.exceptions import GenerationError
from genstudio.services.generation.persister import MetadataMirror
from genstudio.services.generation.prompt_enhancer import image_prompt_tips, video_prompt_tips
from genstudio.services.generation.service import (
    GenerationParams,
    GenerationResult,
    GenerationService,
    MediaSpec,
    image_spec,
    video_spec,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["generation"])

MAX_IMAGES_PER_REQUEST = 4


# Request/Response Models


class ImageRequest(BaseModel):
    """Request body for POST /api/image."""

    model_config = ConfigDict(protected_namespaces=())

    prompt: Optional[str] = Field(default=None, description="What to draw")
    amount: int = Field(default=1, description="Number of images (sent as a string by the UI)")
    resolution: str = Field(default="1024x1024", description="WIDTHxHEIGHT")
    model: str = Field(default="free-model-basic", description="Prompt enhancement tier")

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, value):
        try:
            amount = int(value)
        except (TypeError, ValueError):
            raise ValueError("Amount must be a number")
        if not 1 <= amount <= MAX_IMAGES_PER_REQUEST:
            raise ValueError(f"Amount must be between 1 and {MAX_IMAGES_PER_REQUEST}")
        return amount


class VideoRequest(BaseModel):
    """Request body for POST /api/video."""

    prompt: Optional[str] = Field(default=None, description="What should happen in the clip")


class JsonFileInfo(BaseModel):
    path: str
    filename: str


class GenerationResponse(BaseModel):
    """Successful generation; keys are camelCase for the web client."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    success: bool = True
    urls: list[str]
    used_prompt: str = Field(alias="usedPrompt")
    model: str
    resolution: Optional[str] = None
    message: str
    job_id: str = Field(alias="jobId")
    json_file: Optional[JsonFileInfo] = Field(default=None, alias="jsonFile")


class GenerationRecordResponse(BaseModel):
    """One stored image or video."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: UUID
    user_id: str = Field(alias="userId")
    prompt: str
    url: str
    model: Optional[str] = None
    resolution: Optional[str] = None
    duration: Optional[int] = None
    metadata: Optional[dict] = None
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_record(cls, record: ImageGeneration | VideoGeneration) -> "GenerationRecordResponse":
        if isinstance(record, ImageGeneration):
            return cls(
                id=record.id,
                user_id=record.user_id,
                prompt=record.prompt,
                url=record.image_url,
                model=record.model,
                resolution=record.resolution,
                metadata=record.extra,
                created_at=record.created_at,
            )
        return cls(
            id=record.id,
            user_id=record.user_id,
            prompt=record.prompt,
            url=record.video_url,
            duration=record.duration,
            metadata=record.extra,
            created_at=record.created_at,
        )


def _to_response(result: GenerationResult, message: str) -> GenerationResponse:
    json_file = None
    if result.mirror_file is not None:
        json_file = JsonFileInfo(path=result.mirror_file.path, filename=result.mirror_file.filename)
    return GenerationResponse(
        urls=result.urls,
        used_prompt=result.used_prompt,
        model=result.model,
        resolution=result.resolution,
        message=message,
        job_id=result.job_id,
        json_file=json_file,
    )


async def _run_generation(
    service: GenerationService,
    spec: MediaSpec,
    user_id: str,
    prompt: Optional[str],
    params: GenerationParams,
) -> GenerationResult:
    """Run the pipeline; unexpected errors become a generic GenerationError."""
    try:
        return await service.generate(spec, user_id, prompt, params)
    except GenerationError:
        raise
    except Exception as e:
        logger.error(
            "generation.unexpected_error",
            kind=spec.kind.value,
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=e,
        )
        raise GenerationError(f"Failed to generate {spec.kind.value}") from e


# API Endpoints


@router.post("/image", response_model=GenerationResponse)
async def generate_image(
    request: ImageRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    service: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    """Generate images from a text prompt.

    Example:
        POST /api/image
        {"prompt": "sunset over mountains", "amount": "2", "resolution": "1024x768"}

        Response 200:
        {
            "success": true,
            "urls": ["https://replicate.delivery/.../out-0.png", "..."],
            "usedPrompt": "sunset over mountains, high quality, detailed",
            "model": "free-model-basic",
            "resolution": "1024x768",
            "message": "Images generated successfully!",
            "jobId": "abc123",
            "jsonFile": {"path": "/images/data/...", "filename": "..."}
        }
    """
    params = GenerationParams(
        model=request.model, resolution=request.resolution, amount=request.amount
    )
    result = await _run_generation(service, image_spec(settings), user_id, request.prompt, params)
    return _to_response(result, "Images generated successfully!")


@router.post("/video", response_model=GenerationResponse)
async def generate_video(
    request: VideoRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    service: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    """Generate a short video clip from a text prompt."""
    params = GenerationParams(model=settings.video_model_version)
    result = await _run_generation(service, video_spec(settings), user_id, request.prompt, params)
    return _to_response(result, "Video generated successfully!")


@router.options("/image")
async def image_tips() -> dict:
    return image_prompt_tips()


@router.options("/video")
async def video_tips() -> dict:
    return video_prompt_tips()


async def _read_mirror(
    mirror: MetadataMirror, kind: MediaKind, job_id: Optional[str], limit: int
):
    # Blob files are read off the event loop
    label = kind.value.capitalize()
    if job_id:
        data = await asyncio.to_thread(mirror.read, kind, job_id)
        if data is None:
            return JSONResponse(
                status_code=404,
                content={"success": False, "message": f"{label} data not found"},
            )
        return {"success": True, f"{kind.value}Data": data}

    entries = await asyncio.to_thread(mirror.list_entries, kind, limit)
    return {"success": True, "count": len(entries), f"{kind.value}s": entries}


@router.get("/image/data")
async def get_image_data(
    id: Optional[str] = Query(default=None, description="Prediction id"),
    limit: int = Query(default=50, ge=1, le=500),
    mirror: MetadataMirror = Depends(get_mirror),
):
    """Return one mirrored image blob by prediction id, or summaries of the newest."""
    return await _read_mirror(mirror, MediaKind.IMAGE, id, limit)


@router.get("/video/data")
async def get_video_data(
    id: Optional[str] = Query(default=None, description="Prediction id"),
    limit: int = Query(default=50, ge=1, le=500),
    mirror: MetadataMirror = Depends(get_mirror),
):
    """Return one mirrored video blob by prediction id, or summaries of the newest."""
    return await _read_mirror(mirror, MediaKind.VIDEO, id, limit)


@router.get("/image/history", response_model=list[GenerationRecordResponse])
async def get_image_history(
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> list[GenerationRecordResponse]:
    """Caller's stored images, newest first. Database errors yield an empty list."""
    try:
        async with await uow_factory() as uow:
            records = await uow.images.list_by_user(user_id, limit=limit)
    except Exception as e:
        logger.error(
            "generation.history.failed",
            kind=MediaKind.IMAGE.value,
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return []
    return [GenerationRecordResponse.from_record(record) for record in records]


@router.get("/video/user-videos", response_model=list[GenerationRecordResponse])
async def get_user_videos(
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> list[GenerationRecordResponse]:
    """Caller's stored videos, newest first. Database errors yield an empty list."""
    try:
        async with await uow_factory() as uow:
            records = await uow.videos.list_by_user(user_id, limit=limit)
    except Exception as e:
        logger.error(
            "generation.history.failed",
            kind=MediaKind.VIDEO.value,
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return []
    return [GenerationRecordResponse.from_record(record) for record in records]
