"""
app/api/deps.py

Shared route dependencies: admin authentication, rate limiting, client info.
"""

import secrets
from typing import Optional

from fastapi import Header, Request

from app.core.config import settings
from app.core.exceptions import AuthenticationError, RateLimitError
from app.core.logging import get_logger
from utils.rate_limit import get_rate_limiter

logger = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Socket peer address. X-Forwarded-For is only read when the peer is
    one of TRUSTED_PROXIES; the first hop is then the client.
    """
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.TRUSTED_PROXIES:
        return forwarded.split(",")[0].strip() or peer
    return peer


def get_request_source(request: Request) -> str:
    """Host the form was submitted from, stored on leads as `source`."""
    return request.headers.get("x-forwarded-host") or request.headers.get("host") or "unknown"


async def require_admin(authorization: Optional[str] = Header(default=None)):
    """
    Requires `Authorization: Bearer <ADMIN_API_TOKEN>`.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        logger.error("ADMIN_API_TOKEN not configured, admin route refused")
        raise AuthenticationError("Accès administrateur non configuré")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Authentification requise")

    if not secrets.compare_digest(token.strip(), expected):
        raise AuthenticationError("Jeton administrateur invalide")


def rate_limit(max_requests: int, window_seconds: int):
    """
    Builds a dependency limiting each client IP on the route it is attached to.
    """
    limiter = get_rate_limiter(max_requests, window_seconds)

    async def dependency(request: Request):
        key = f"{get_client_ip(request)}:{request.url.path}"
        allowed, retry_after = limiter.check(key)
        if not allowed:
            logger.warning(f"Rate limit exceeded on {request.url.path}")
            raise RateLimitError(details={"retry_after": retry_after})

    return dependency
