"""
Security middleware for FastAPI:
- API key authentication (Authorization: Bearer / X-API-Key)
- Per-IP rate limiting
- Request access logging
"""

import math
import time
from typing import Iterable, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from loguru import logger

from auth.cache_manager import InMemoryRateLimiter
from auth.errors import AuthError, InvalidCredential, MissingCredential, PersistenceError
from auth.key_manager import APIKeyManager
from auth.schemas import AuthContext

BEARER_PREFIX = "Bearer "

api_logger = logger.bind(context="api")


def get_client_ip(request: Request) -> str:
    """Extract client IP, preferring the first X-Forwarded-For hop"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def extract_api_key(request: Request) -> Optional[str]:
    """Bearer token from Authorization takes precedence over X-API-Key"""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith(BEARER_PREFIX):
        token = auth_header[len(BEARER_PREFIX):].strip()
        if token:
            return token

    api_key = request.headers.get("x-api-key")
    if api_key and api_key.strip():
        return api_key.strip()
    return None


def error_response(error: AuthError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """
    Authenticate every request with an API key.

    On success a frozen AuthContext is stored on request.state.auth for
    the permission checks and handlers downstream. Public paths and the
    auth_disabled switch skip the check entirely.
    """

    def __init__(
        self,
        app,
        key_manager: APIKeyManager,
        auth_disabled: bool = False,
        public_paths: Iterable[str] = ("/api/health",),
    ):
        super().__init__(app)
        self.key_manager = key_manager
        self.auth_disabled = auth_disabled
        self.public_paths = frozenset(public_paths)

    async def dispatch(self, request: Request, call_next):
        if self.auth_disabled:
            request.state.auth = AuthContext.bypass()
            return await call_next(request)

        if request.url.path in self.public_paths:
            return await call_next(request)

        api_key = extract_api_key(request)
        if not api_key:
            return error_response(MissingCredential())

        try:
            result = await run_in_threadpool(self.key_manager.validate, api_key)
        except PersistenceError as e:
            logger.error(f"API key validation unavailable for {request.url.path}: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "message": "Storage operation failed"},
            )

        if not result.valid:
            logger.warning(
                f"Rejected API key for {request.method} {request.url.path} from {get_client_ip(request)}"
            )
            return error_response(InvalidCredential())

        request.state.auth = AuthContext(name=result.name, permissions=result.permissions)
        return await call_next(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP rate limiting middleware.
    Applies one fixed window to every route.
    """

    def __init__(self, app, limiter: InMemoryRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        if not self.limiter.enabled:
            return await call_next(request)

        client_ip = get_client_ip(request)
        result = self.limiter.hit(client_ip)
        reset_seconds = max(0, math.ceil(result.reset_in))

        headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(reset_seconds),
        }

        if not result.allowed:
            logger.warning(f"Rate limit exceeded for IP {client_ip}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests",
                    "message": f"Rate limit exceeded. Try again in {reset_seconds} seconds.",
                    "retryAfter": reset_seconds,
                },
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, duration and client IP for every request"""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        api_logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.0f}ms ip={get_client_ip(request)}"
        )
        return response
