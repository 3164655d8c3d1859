"""Generation record repositories.

Provides data access methods for ImageGeneration and VideoGeneration entities.
"""

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from genstudio.models.generation import ImageGeneration, VideoGeneration


class ImageGenerationRepository:
    """Repository for ImageGeneration entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, record: ImageGeneration) -> ImageGeneration:
        """Persist new image record to database.

        Args:
            record: ImageGeneration entity to persist

        Returns:
            Persisted record with generated ID
        """
        self.session.add(record)
        await self.session.flush()
        return record

    async def list_by_user(self, user_id: str, limit: int = 50) -> list[ImageGeneration]:
        """Retrieve a user's image records, newest first.

        Args:
            user_id: Authenticated user identifier
            limit: Maximum number of records to return

        Returns:
            List of records ordered by creation time (newest first)
        """
        result = await self.session.execute(
            select(ImageGeneration)
            .where(ImageGeneration.user_id == user_id)  # type: ignore[arg-type]
            .order_by(ImageGeneration.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_since(self, user_id: str, since: datetime) -> int:
        """Count a user's image records created at or after `since`."""
        result = await self.session.execute(
            select(func.count())
            .select_from(ImageGeneration)
            .where(ImageGeneration.user_id == user_id)  # type: ignore[arg-type]
            .where(ImageGeneration.created_at >= since)  # type: ignore[arg-type]
        )
        return result.scalar_one()

    async def count_older_than(self, cutoff: datetime) -> int:
        """Count records created before `cutoff`."""
        result = await self.session.execute(
            select(func.count())
            .select_from(ImageGeneration)
            .where(ImageGeneration.created_at < cutoff)  # type: ignore[arg-type]
        )
        return result.scalar_one()

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records created before `cutoff`.

        Returns:
            Number of deleted rows
        """
        result = await self.session.execute(
            delete(ImageGeneration).where(
                ImageGeneration.created_at < cutoff  # type: ignore[arg-type]
            )
        )
        return result.rowcount  # type: ignore[attr-defined]


class VideoGenerationRepository:
    """Repository for VideoGeneration entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, record: VideoGeneration) -> VideoGeneration:
        """Persist new video record to database."""
        self.session.add(record)
        await self.session.flush()
        return record

    async def list_by_user(self, user_id: str, limit: int = 50) -> list[VideoGeneration]:
        """Retrieve a user's video records, newest first."""
        result = await self.session.execute(
            select(VideoGeneration)
            .where(VideoGeneration.user_id == user_id)  # type: ignore[arg-type]
            .order_by(VideoGeneration.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_since(self, user_id: str, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(VideoGeneration)
            .where(VideoGeneration.user_id == user_id)  # type: ignore[arg-type]
            .where(VideoGeneration.created_at >= since)  # type: ignore[arg-type]
        )
        return result.scalar_one()

    async def count_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(VideoGeneration)
            .where(VideoGeneration.created_at < cutoff)  # type: ignore[arg-type]
        )
        return result.scalar_one()

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(VideoGeneration).where(
                VideoGeneration.created_at < cutoff  # type: ignore[arg-type]
            )
        )
        return result.rowcount  # type: ignore[attr-defined]
