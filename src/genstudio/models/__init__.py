"""Domain models.

Table models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from genstudio.models.generation import ImageGeneration, MediaKind, VideoGeneration
from genstudio.models.job import (
    GenerationJob,
    InvalidStateTransition,
    JobStatus,
    PredictionSnapshot,
)

__all__ = [
    "GenerationJob",
    "ImageGeneration",
    "InvalidStateTransition",
    "JobStatus",
    "MediaKind",
    "PredictionSnapshot",
    "VideoGeneration",
]
