"""CLI command for deleting generation records past the retention window.

Usage:
    python -m genstudio.cli.cleanup_generations [OPTIONS]

Examples:
    # Delete records older than RETENTION_DAYS (default 30)
    python -m genstudio.cli.cleanup_generations

    # Keep one week
    python -m genstudio.cli.cleanup_generations --days 7

    # Count what would be deleted
    python -m genstudio.cli.cleanup_generations --dry-run

    # Verbose logging
    python -m genstudio.cli.cleanup_generations -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional, Sequence

import structlog

from genstudio.core import timezone  # noqa: F401
from genstudio.core.config import Settings, configure_logging
from genstudio.core.database import setup_db_session
from genstudio.uow import create_uow_factory

logger = structlog.get_logger()


@dataclass
class CleanupResult:
    cutoff: datetime
    images: int
    videos: int
    dry_run: bool

    @property
    def total(self) -> int:
        return self.images + self.videos


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Delete image and video generation records past the retention window",
    )

    parser.add_argument(
        "--days",
        type=int,
        help="Retention window in days (default: RETENTION_DAYS, 30)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count matching records without deleting them",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def retention_cutoff(days: int, now: Optional[datetime] = None) -> datetime:
    """Aware UTC cutoff; records created strictly before it are removed."""
    if days < 1:
        raise ValueError("Retention window must be at least 1 day")
    now = now or datetime.now(dt_timezone.utc)
    return now.astimezone(dt_timezone.utc) - timedelta(days=days)


async def cleanup_generations(uow_factory, cutoff: datetime, dry_run: bool = False):
    """Delete (or count, on dry run) image and video records older than cutoff."""
    async with await uow_factory() as uow:
        if dry_run:
            images = await uow.images.count_older_than(cutoff)
            videos = await uow.videos.count_older_than(cutoff)
        else:
            images = await uow.images.delete_older_than(cutoff)
            videos = await uow.videos.delete_older_than(cutoff)

    return CleanupResult(cutoff=cutoff, images=images, videos=videos, dry_run=dry_run)


def print_summary(result: CleanupResult) -> None:
    print("\n" + "=" * 60)
    print("Generation Cleanup Summary")
    print("=" * 60)
    print(f"Cutoff (UTC): {result.cutoff.isoformat()}")
    print(f"Image records: {result.images}")
    print(f"Video records: {result.videos}")
    print(f"Total: {result.total}")

    if result.dry_run:
        print("\n[DRY RUN] No records were deleted")

    print("=" * 60 + "\n")


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 130 (interrupted)
    """
    args = parse_args(argv)

    # Initialize settings and logging
    settings = Settings()  # type: ignore[call-arg]

    # Configure logging level
    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)

    days = args.days if args.days is not None else settings.retention_days

    try:
        cutoff = retention_cutoff(days)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("cli.started", days=days, cutoff=cutoff.isoformat(), dry_run=args.dry_run)

    # Initialize database session factory
    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    try:
        result = await cleanup_generations(uow_factory, cutoff, dry_run=args.dry_run)
        print_summary(result)
        logger.info(
            "cli.success",
            images=result.images,
            videos=result.videos,
            dry_run=result.dry_run,
        )
        return 0

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nCleanup interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT

    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
