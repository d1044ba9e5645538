"""Dependency injection for API routes.

Provides FastAPI dependencies for configuration, database sessions, the
shared outbound HTTP client, the LLM provider, and JWT-based authentication.

Called by: All route modules via type aliases (CurrentUser, DbSession, etc.)
Depends on: config.py, models/database.py, models/tables.py, core/registry.py
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

import httpx
import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taverns.config import Settings, get_settings
from taverns.core.protocols import LLMProvider
from taverns.core.registry import get_provider_registry
from taverns.models.database import get_async_session
from taverns.models.tables import Library, User

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"

# ─── Settings ──────────────────────────────────────────────────────────────────


def get_config() -> Settings:
    """Return the application config."""
    return get_settings()


ConfigDep = Annotated[Settings, Depends(get_config)]

# ─── Database ──────────────────────────────────────────────────────────────────


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async for session in get_async_session():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]

# ─── Outbound HTTP + LLM ───────────────────────────────────────────────────────


async def get_http_client(request: Request) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield the app-wide client; fall back to a per-request one outside lifespan."""
    client = getattr(request.app.state, "http_client", None)
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=get_settings().http_timeout_seconds) as fresh:
        yield fresh


HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]


def get_llm() -> LLMProvider | None:
    """Configured LLM provider, or None when AI features are off."""
    return get_provider_registry().get_llm()


LLMDep = Annotated[LLMProvider | None, Depends(get_llm)]

# ─── Auth ──────────────────────────────────────────────────────────────────────


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Validate the HS256 bearer token and return the user context.

    Returns:
        Dict with user context: id (UUID), email, role.

    Raises:
        HTTPException: 401 if the token is missing, malformed, invalid, or
            names an unknown user; 503 if no AUTH_SECRET is configured.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    token = authorization.split(" ", 1)[1]
    settings = get_settings()

    if not settings.auth_secret:
        logger.error("AUTH_SECRET not set; rejecting auth tokens")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Import service temporarily unavailable. Please try again later.",
        )

    try:
        payload = jwt.decode(token, settings.auth_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has expired",
        ) from None
    except jwt.InvalidTokenError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
        ) from exc

    email = payload.get("email")
    sub = payload.get("sub")
    if not email and not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user identity",
        )

    user_record = None
    if sub:
        try:
            sub_uuid = uuid.UUID(str(sub))
        except ValueError:
            sub_uuid = None  # Not one of our ids; fall back to email.
        if sub_uuid is not None:
            result = await db.execute(select(User).where(User.id == sub_uuid))
            user_record = result.scalar_one_or_none()
    if user_record is None and email:
        result = await db.execute(select(User).where(User.email == email))
        user_record = result.scalar_one_or_none()

    if user_record is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )

    return {
        "id": user_record.id,
        "email": user_record.email,
        "role": user_record.role or "USER",
    }


CurrentUser = Annotated[dict, Depends(get_current_user)]

# ─── Authorization ─────────────────────────────────────────────────────────────


async def resolve_target_library(
    db: AsyncSession,
    user: dict,
    library_id: uuid.UUID | None,
) -> uuid.UUID:
    """Pick the library an import writes into and check the caller may write it.

    Without an explicit ``library_id`` the caller's own (oldest) library is
    used. Owners may import into their library; platform admins into any.

    Raises:
        HTTPException: 403 when the caller owns no library or lacks access,
            404 when an explicit library does not exist.
    """
    is_admin = user.get("role") == ADMIN_ROLE

    if library_id is None:
        result = await db.execute(
            select(Library.id)
            .where(Library.owner_id == user["id"])
            .order_by(Library.created_at.asc())
            .limit(1)
        )
        own_library = result.scalars().first()
        if own_library is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You must own a library to import games",
            )
        return own_library

    result = await db.execute(select(Library).where(Library.id == library_id))
    library = result.scalar_one_or_none()
    if library is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Library not found")
    if library.owner_id != user["id"] and not is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to import into this library",
        )
    return library.id
