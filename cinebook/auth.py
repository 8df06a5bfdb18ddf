# cinebook/auth.py
"""
Admin gate.

Callers authenticate with a bearer JWT whose ``sub`` is their identity-provider
user id. Admin-only routes depend on ``protect_admin``, which asks an
``Authorizer`` whether that user carries the ``admin`` role. Rejections are
returned as ``{"success": false, "message": ...}`` bodies rather than errors.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from redis.asyncio import Redis

from cinebook.core.config import (
    ADMIN_ROLE_CACHE_TTL,
    IDENTITY_API_URL,
    IDENTITY_SECRET_KEY,
    JWT_ALGORITHM,
    SECRET_KEY,
)
from cinebook.core.errors import AuthorizerError
from cinebook.core.redis import get_optional_redis, redis_key

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60
ADMIN_ROLE = "admin"


class AdminGateRejected(Exception):
    """Short-circuits an admin route; rendered as a failure body."""

    def __init__(self, message: str, status_code: int = 403):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# =====================================
# JWT Helpers
# =====================================
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + timedelta(minutes=expires_minutes)})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def get_caller_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Return the authenticated user id, or None for anonymous/invalid tokens."""
    if credentials is None:
        return None
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        return None
    return payload.get("sub") or None


# =====================================
# Role lookups
# =====================================
class Authorizer(Protocol):
    async def is_admin(self, caller_id: str) -> bool:
        ...


class IdentityProviderAuthorizer:
    """Reads ``private_metadata.role`` from the identity provider's user API."""

    def __init__(
        self,
        api_url: str = IDENTITY_API_URL,
        secret_key: str = IDENTITY_SECRET_KEY,
        redis: Optional[Redis] = None,
        cache_ttl: int = ADMIN_ROLE_CACHE_TTL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.secret_key = secret_key
        self.redis = redis
        self.cache_ttl = cache_ttl
        self.transport = transport
        self.timeout = timeout

    async def _cached_role(self, caller_id: str) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            return await self.redis.get(redis_key("admin_role", caller_id))
        except Exception as e:
            logger.warning("Role cache read failed for %s: %s", caller_id, e)
            return None

    async def _cache_role(self, caller_id: str, role: str) -> None:
        if self.redis is None or self.cache_ttl <= 0:
            return
        try:
            await self.redis.set(redis_key("admin_role", caller_id), role, ex=self.cache_ttl)
        except Exception as e:
            logger.warning("Role cache write failed for %s: %s", caller_id, e)

    async def get_role(self, caller_id: str) -> Optional[str]:
        cached = await self._cached_role(caller_id)
        if cached is not None:
            return cached or None

        headers = {"Authorization": f"Bearer {self.secret_key}"}
        try:
            async with httpx.AsyncClient(base_url=self.api_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"/users/{caller_id}", headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AuthorizerError(f"Role lookup failed for {caller_id}: {e}") from e

        role = (payload.get("private_metadata") or {}).get("role") or ""
        await self._cache_role(caller_id, role)
        return role or None

    async def is_admin(self, caller_id: str) -> bool:
        return await self.get_role(caller_id) == ADMIN_ROLE


async def get_authorizer(redis: Optional[Redis] = Depends(get_optional_redis)) -> Authorizer:
    return IdentityProviderAuthorizer(redis=redis)


# =====================================
# Admin gate dependency
# =====================================
async def protect_admin(
    caller_id: Optional[str] = Depends(get_caller_id),
    authorizer: Authorizer = Depends(get_authorizer),
) -> str:
    if not caller_id:
        raise AdminGateRejected("User not authenticated", status_code=401)

    try:
        allowed = await authorizer.is_admin(caller_id)
    except Exception as e:
        logger.warning("Admin check failed for %s: %s", caller_id, e)
        raise AdminGateRejected(str(e), status_code=503)

    if not allowed:
        logger.info("User %s denied admin access", caller_id)
        raise AdminGateRejected("not authorized")
    return caller_id
