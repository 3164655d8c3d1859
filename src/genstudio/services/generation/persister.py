"""Result persistence for succeeded generation jobs.

Both writes here are best effort. The prediction has already succeeded and
used provider quota, so a storage failure is logged and the caller still gets
the generated URLs.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from genstudio.models.generation import ImageGeneration, MediaKind, VideoGeneration
from genstudio.models.job import GenerationJob
from genstudio.services.exceptions import PersistenceWarning, SubmissionFailed
from genstudio.uow import UnitOfWork

logger = structlog.get_logger(__name__)

UowFactory = Callable[[], Awaitable[UnitOfWork]]


@dataclass
class GenerationRequest:
    """Caller-side context of one generation, carried into the stored records."""

    kind: MediaKind
    user_id: str
    prompt: str
    enhanced_prompt: str
    model: str
    resolution: Optional[str] = None
    aspect_ratio: Optional[str] = None
    duration: Optional[int] = None


def normalize_output(output: Any) -> list[str]:
    """Normalize provider output to a list of URLs.

    A bare string becomes a one-element list and a list of strings passes
    through unchanged.

    Raises:
        SubmissionFailed: Output is missing, empty or of any other shape
    """
    if isinstance(output, str) and output:
        return [output]
    if isinstance(output, list) and output and all(isinstance(u, str) and u for u in output):
        return output
    raise SubmissionFailed(f"Unexpected output format from provider: {type(output).__name__}")


class ResultPersister:
    """Writes one generation record per output URL through the Unit of Work."""

    def __init__(self, uow_factory: UowFactory):
        self.uow_factory = uow_factory

    def _build_record(
        self, job: GenerationJob, request: GenerationRequest, url: str
    ) -> ImageGeneration | VideoGeneration:
        extra = {
            "provider_job_id": job.job_id,
            "enhanced_prompt": request.enhanced_prompt,
            "stream_url": job.urls.get("stream"),
            "prediction_url": job.urls.get("get"),
            "type": request.kind.value,
        }
        if request.kind == MediaKind.IMAGE:
            extra["aspect_ratio"] = request.aspect_ratio
            return ImageGeneration(
                user_id=request.user_id,
                prompt=request.prompt,
                model=request.model,
                image_url=url,
                resolution=request.resolution or "1024x1024",
                extra=extra,
            )
        return VideoGeneration(
            user_id=request.user_id,
            prompt=request.prompt,
            video_url=url,
            duration=request.duration,
            extra=extra,
        )

    async def _save(self, records: list[ImageGeneration | VideoGeneration]) -> list[UUID]:
        try:
            async with await self.uow_factory() as uow:
                for record in records:
                    if isinstance(record, ImageGeneration):
                        await uow.images.add(record)
                    else:
                        await uow.videos.add(record)
        except Exception as e:
            raise PersistenceWarning(f"{type(e).__name__}: {e}") from e
        return [record.id for record in records]

    async def persist(
        self, job: GenerationJob, request: GenerationRequest, urls: list[str]
    ) -> list[UUID]:
        """Store one record per URL in a single transaction.

        Returns:
            IDs of the stored records, or an empty list when the write failed
        """
        records = [self._build_record(job, request, url) for url in urls]
        try:
            ids = await self._save(records)
        except PersistenceWarning as warning:
            logger.error(
                "generation.persist.failed",
                job_id=job.job_id,
                kind=request.kind.value,
                user_id=request.user_id,
                url_count=len(urls),
                error_message=str(warning),
            )
            return []

        logger.info(
            "generation.persisted",
            job_id=job.job_id,
            kind=request.kind.value,
            user_id=request.user_id,
            record_count=len(ids),
        )
        return ids


@dataclass
class MirrorFile:
    filename: str
    path: str


class MetadataMirror:
    """JSON audit blob per job under `<root>/<kind>s/data/`."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _directory(self, kind: MediaKind) -> Path:
        return self.root / f"{kind.value}s" / "data"

    def write(
        self, job: GenerationJob, request: GenerationRequest, urls: list[str]
    ) -> Optional[MirrorFile]:
        """Write the blob; returns None (after logging) when the write fails."""
        millis = int(time.time() * 1000)
        filename = f"{request.kind.value}_{job.job_id}_{millis}.json"
        directory = self._directory(request.kind)

        payload = {
            "id": job.job_id,
            "status": job.status.value,
            "createdAt": job.created_at,
            "completedAt": job.completed_at,
            "originalPrompt": request.prompt,
            "enhancedPrompt": request.enhanced_prompt,
            "urls": urls,
            "model": request.model,
            "resolution": request.resolution,
            "modelVersion": job.version,
            "input": job.input,
            "metrics": job.metrics,
            "attempts": job.attempts,
            "providerUrls": job.urls or None,
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }

        try:
            directory.mkdir(parents=True, exist_ok=True)
            (directory / filename).write_text(
                json.dumps(payload, indent=2, default=str), encoding="utf-8"
            )
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "generation.mirror.failed",
                job_id=job.job_id,
                kind=request.kind.value,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return None

        logger.debug("generation.mirror.written", job_id=job.job_id, filename=filename)
        return MirrorFile(filename=filename, path=f"/{request.kind.value}s/data/{filename}")

    def read(self, kind: MediaKind, job_id: str) -> Optional[dict]:
        """Return the newest blob recorded for `job_id`, or None.

        An unreadable or corrupt blob is logged and treated as missing.
        """
        if not job_id.replace("-", "").replace("_", "").isalnum():
            return None
        directory = self._directory(kind)
        if not directory.is_dir():
            return None
        matches = sorted(directory.glob(f"{kind.value}_{job_id}_*.json"), reverse=True)
        if not matches:
            return None
        try:
            return json.loads(matches[0].read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "generation.mirror.unreadable",
                filename=matches[0].name,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return None

    def list_entries(self, kind: MediaKind, limit: int = 50) -> list[dict]:
        """Summaries of the newest blobs; unreadable files are reported, not raised."""
        directory = self._directory(kind)
        if not directory.is_dir():
            return []

        files = sorted(directory.glob(f"{kind.value}_*.json"), key=lambda p: p.stat().st_mtime)
        summaries = []
        for path in reversed(files[-limit:] if limit > 0 else []):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                summaries.append({"filename": path.name, "error": "Could not parse file"})
                continue
            summaries.append(
                {
                    "id": data.get("id"),
                    "filename": path.name,
                    "path": f"/{kind.value}s/data/{path.name}",
                    "prompt": data.get("originalPrompt"),
                    "urls": data.get("urls", []),
                    "createdAt": data.get("createdAt") or data.get("savedAt"),
                }
            )
        return summaries
