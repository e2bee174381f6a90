"""
Request hardening: per-client rate limits and the body size guard.

Two fixed-window counters are kept per client address. Every API request
counts against ``RATE_LIMIT_MAX``; entity writes (create, batch, update and
delete, but not filter reads) also count against ``RATE_LIMIT_WRITE_MAX``.
Limits are read from ``config`` on every request.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from ..core import config
from ..util.logging import logger

TOO_MANY_REQUESTS = "Too many requests, please try again later."
TOO_MANY_WRITES = "Too many write requests, please try again later."
WRITE_METHODS = ("POST", "PUT", "DELETE")


def api_limit() -> str:
    return f"{config.RATE_LIMIT_MAX} per {config.RATE_LIMIT_WINDOW_MIN} minutes"


def write_limit() -> str:
    return f"{config.RATE_LIMIT_WRITE_MAX} per {config.RATE_LIMIT_WINDOW_MIN} minutes"


def is_entity_write(method: str, path: str) -> bool:
    if method not in WRITE_METHODS:
        return False
    if not path.startswith(f"{config.API_PREFIX}/entities/"):
        return False
    return method == "DELETE" or not path.rstrip("/").endswith("/filter")


class RateLimiter:
    """In-memory fixed-window counters, one set per application."""

    def __init__(self):
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, limit: str, scope: str, client: str) -> bool:
        """Count one request; False once the window is used up."""
        return self.strategy.hit(parse(limit), scope, client)

    def reset(self):
        self.storage.reset()


def rate_limit_middleware(limiter: RateLimiter):
    async def limit_requests(request: Request, call_next):
        path = request.url.path
        if config.RATE_LIMIT_ENABLED and path.startswith(f"{config.API_PREFIX}/"):
            client = request.client.host if request.client else "unknown"
            message = None
            if not limiter.hit(api_limit(), "api", client):
                message = TOO_MANY_REQUESTS
            elif is_entity_write(request.method, path) and not limiter.hit(write_limit(), "write", client):
                message = TOO_MANY_WRITES
            if message:
                logger.warning(f"Rate limit exceeded for {client}: {request.method} {path}")
                return JSONResponse(status_code=429, content={"error": message})
        return await call_next(request)

    return limit_requests


async def limit_body_size(request: Request, call_next):
    """Reject requests whose declared body exceeds ``config.BODY_LIMIT_BYTES``."""
    length = request.headers.get("content-length")
    if length is not None:
        if not length.isdigit():
            return JSONResponse(status_code=400, content={"error": "Invalid Content-Length header"})
        if int(length) > config.BODY_LIMIT_BYTES:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
    return await call_next(request)
