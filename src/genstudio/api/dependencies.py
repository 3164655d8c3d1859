"""FastAPI dependencies for request context and shared services.

This module provides reusable FastAPI dependencies for:
- Settings access
- The authenticated user set by the auth middleware
- Unit of Work factory and generation service stored on app.state
"""

from functools import lru_cache
from typing import Annotated, Callable

from fastapi import Header, Request

from genstudio.core.config import Settings
from genstudio.services.exceptions import AuthError
from genstudio.services.generation.persister import MetadataMirror
from genstudio.services.generation.service import GenerationService
from genstudio.uow import UnitOfWork


@lru_cache
def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()  # type: ignore[call-arg]  # Pydantic loads from env vars


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Return the user id forwarded by the authentication middleware.

    Session handling lives in the middleware in front of this service; it
    forwards the verified user id in the X-User-Id header.

    Raises:
        AuthError: Header missing or blank (HTTP 401)
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthError("Unauthorized")
    return x_user_id.strip()


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.images.list_by_user(user_id)
    """
    return request.app.state.uow_factory


def get_generation_service(request: Request) -> GenerationService:
    """Get the process-wide GenerationService from app state."""
    return request.app.state.generation_service


def get_mirror(request: Request) -> MetadataMirror:
    """Get the audit mirror reader; falls back to the configured directory."""
    service: GenerationService = request.app.state.generation_service
    if service.mirror is not None:
        return service.mirror
    return MetadataMirror(get_settings().mirror_dir)
