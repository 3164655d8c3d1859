"""pytest fixtures for genstudio backend tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- session_factory: Function-scoped in-memory SQLite database with tables created
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- provider: Scripted stand-in for the Replicate provider
- fake_sleep: Records poll delays instead of sleeping
- generation_service: GenerationService wired to the fixtures above
"""

import os

# Settings fail fast without provider/database config outside test environments
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from typing import Any, AsyncGenerator, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from genstudio.models import ImageGeneration, VideoGeneration  # noqa: E402, F401
from genstudio.models.job import GenerationJob, PredictionSnapshot  # noqa: E402
from genstudio.services.generation.gate import ConcurrencyGate  # noqa: E402
from genstudio.services.generation.persister import MetadataMirror  # noqa: E402
from genstudio.services.generation.poller import PollPolicy  # noqa: E402
from genstudio.services.generation.service import GenerationService  # noqa: E402
from genstudio.uow import create_uow_factory  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests.

    Autouse fixture ensures TZ=UTC is set before any test runs.
    This prevents timezone-dependent behavior and ensures reproducible tests.
    """
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive across sessions so
    every UnitOfWork sees the same data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


@pytest.fixture
def broken_uow_factory():
    """UnitOfWork factory whose database is unreachable."""

    async def _create_uow():
        raise ConnectionRefusedError("database unavailable")

    return _create_uow


class ScriptedProvider:
    """Provider double that replays a scripted sequence of statuses.

    The last scripted status repeats once the script is exhausted.
    """

    def __init__(self, job_id: str = "pred-123"):
        self.job_id = job_id
        self.submit_status = "starting"
        self.statuses: list[str] = ["succeeded"]
        self.output: Any = ["https://replicate.delivery/out-0.png"]
        self.error: Optional[str] = None
        self.submit_error: Optional[Exception] = None
        self.status_errors: list[Exception] = []
        self.submitted: list[tuple[str, dict]] = []
        self.status_calls = 0

    def script(
        self,
        statuses: list[str],
        output: Any = None,
        error: Optional[str] = None,
        submit_status: str = "starting",
    ) -> None:
        self.statuses = list(statuses)
        if output is not None:
            self.output = output
        self.error = error
        self.submit_status = submit_status

    def _snapshot(self, status: str, input: Optional[dict] = None) -> PredictionSnapshot:
        return PredictionSnapshot(
            id=self.job_id,
            status=status,
            input=input or {},
            output=self.output if status == "succeeded" else None,
            error=self.error if status in ("failed", "canceled") else None,
            urls={
                "get": f"https://api.replicate.com/v1/predictions/{self.job_id}",
                "stream": f"https://stream.replicate.com/v1/files/{self.job_id}",
            },
        )

    async def submit(self, model: str, input: dict) -> GenerationJob:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((model, input))
        return GenerationJob.from_snapshot(self._snapshot(self.submit_status, input))

    async def get_status(self, job_id: str) -> PredictionSnapshot:
        self.status_calls += 1
        if self.status_errors:
            raise self.status_errors.pop(0)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return self._snapshot(status)


class RecordingSleep:
    """Sleep replacement recording requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mirror(tmp_path) -> MetadataMirror:
    return MetadataMirror(tmp_path / "public")


@pytest.fixture
def generation_service(provider, uow_factory, fake_sleep, mirror) -> GenerationService:
    """GenerationService with production poll policy and no real delays."""
    return GenerationService(
        provider=provider,  # type: ignore[arg-type]
        uow_factory=uow_factory,
        gate=ConcurrencyGate(4),
        policy=PollPolicy(max_attempts=60, interval_seconds=5.0, transient_retries=2),
        mirror=mirror,
        sleep=fake_sleep,
    )
