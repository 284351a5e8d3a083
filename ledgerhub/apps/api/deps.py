from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator
import asyncio
import logging
import time

from fastapi import Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.core.config import get_settings
from ledgerhub.domain.models import ApiKey, User
from ledgerhub.persistence.db import get_session
from ledgerhub.services.auth.api_keys import hash_api_key, key_id_from_token
from ledgerhub.services.issuance import IssuanceService
from ledgerhub.services.resources import ResourceHandlers
from ledgerhub.services.store import SqlDataStore


logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class Principal(BaseModel):
    # The authenticated caller; project access is resolved per request from memberships.
    subject_id: str
    api_key_id: str
    auth_method: str = "api_key"


_auth_cache: dict[str, tuple[float, Principal]] = {}
_auth_cache_lock = asyncio.Lock()


def _auth_error(message: str) -> HTTPException:
    # Normalize auth errors for clients without leaking internal details.
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _get_cached_principal(key_hash: str, ttl_s: int) -> Principal | None:
    # Cache principals briefly to reduce auth DB load between requests.
    if ttl_s <= 0:
        return None
    now = time.time()
    async with _auth_cache_lock:
        entry = _auth_cache.get(key_hash)
        if not entry:
            return None
        expires_at, principal = entry
        if expires_at <= now:
            _auth_cache.pop(key_hash, None)
            return None
        return principal


async def _set_cached_principal(key_hash: str, principal: Principal, ttl_s: int) -> None:
    if ttl_s <= 0:
        return
    async with _auth_cache_lock:
        _auth_cache[key_hash] = (time.time() + ttl_s, principal)


def clear_auth_cache() -> None:
    _auth_cache.clear()


def _parse_bearer_token(header_value: str | None) -> str | None:
    # Enforce Bearer token format for API key authentication.
    if not header_value:
        return None
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _auth_error("Missing or invalid bearer token")
    return parts[1]


def _principal_from_dev_headers(request: Request) -> Principal:
    # Allow header-declared identities only when explicitly enabled for local dev.
    user_id = request.headers.get("X-User-Id")
    if not user_id:
        raise _auth_error("X-User-Id header is required in dev bypass mode")
    return Principal(subject_id=user_id, api_key_id="dev-bypass", auth_method="dev_bypass")


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    settings = get_settings()
    bearer_token = _parse_bearer_token(request.headers.get(settings.auth_api_key_header))

    if not settings.auth_enabled or not bearer_token:
        if settings.auth_dev_bypass:
            return _principal_from_dev_headers(request)
        if not settings.auth_enabled:
            raise _auth_error("Authentication disabled; set AUTH_DEV_BYPASS=true for dev access")
        raise _auth_error("Missing API key")

    # Malformed tokens never reach the database.
    key_id = key_id_from_token(bearer_token)
    if key_id is None:
        raise _auth_error("Invalid API key")
    key_hash = hash_api_key(bearer_token)
    cached = await _get_cached_principal(key_hash, settings.auth_cache_ttl_s)
    if cached:
        return cached

    try:
        result = await db.execute(
            select(ApiKey, User)
            .join(User, ApiKey.user_id == User.id)
            .where(ApiKey.id == key_id, ApiKey.key_hash == key_hash)
        )
        row = result.first()
    except SQLAlchemyError as exc:
        logger.error("auth_lookup_failed", exc_info=exc)
        raise HTTPException(status_code=500, detail="Database error while authenticating") from exc
    if row is None:
        raise _auth_error("Invalid API key")
    api_key, user = row
    if api_key.revoked_at is not None or not user.is_active:
        raise _auth_error("API key is revoked or inactive")
    expires_at = api_key.expires_at
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            raise _auth_error("API key expired")

    principal = Principal(subject_id=user.id, api_key_id=api_key.id, auth_method="api_key")
    await _set_cached_principal(key_hash, principal, settings.auth_cache_ttl_s)
    return principal


async def get_handlers(db: AsyncSession = Depends(get_db)) -> ResourceHandlers:
    # The request session is the store, the authorization source and the transactional scope.
    return ResourceHandlers(
        store=SqlDataStore(db),
        creator=IssuanceService(),
        scope=db,
        cursor_secret=get_settings().cursor_secret,
    )


@dataclass(frozen=True)
class PageParams:
    cursor: str | None
    # Left unparsed; the size is validated after authorization.
    page_size: str | None


def page_params(
    cursor: str | None = Query(default=None, description="Opaque cursor from a previous page's `last`"),
    prev: str | None = Query(default=None, description="Deprecated alias of `cursor`"),
    page_size: str | None = Query(default=None, alias="pageSize"),
    limit: str | None = Query(default=None, description="Deprecated alias of `pageSize`"),
) -> PageParams:
    # Older clients still send prev/limit; the new names win when both are present.
    return PageParams(
        cursor=cursor if cursor is not None else prev,
        page_size=page_size if page_size is not None else limit,
    )
