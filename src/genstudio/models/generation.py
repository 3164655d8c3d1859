"""Generation record entities - one row per output URL of a succeeded job."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _created_at_column() -> Column:
    # Timestamps are stored timezone-aware (UTC); cutoffs passed to queries must be aware too
    return Column(DateTime(timezone=True), nullable=False, index=True)


class MediaKind(str, Enum):
    """Media kinds produced through the prediction pipeline."""

    IMAGE = "image"
    VIDEO = "video"


class ImageGeneration(SQLModel, table=True):
    """ImageGeneration stores one generated image URL for a user."""

    __tablename__ = "image_generations"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    prompt: str
    model: str = Field(max_length=100)
    image_url: str
    resolution: str = Field(default="1024x1024", max_length=20)
    # "metadata" is reserved on declarative classes, so the column is mapped by name
    extra: Optional[dict] = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=_created_at_column())


class VideoGeneration(SQLModel, table=True):
    """VideoGeneration stores one generated video URL for a user."""

    __tablename__ = "video_generations"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    prompt: str
    video_url: str
    duration: Optional[int] = Field(default=None, ge=0)
    extra: Optional[dict] = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=_created_at_column())
