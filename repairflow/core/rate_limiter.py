"""
Rate Limiting for the RepairFlow API
====================================
slowapi limiter keyed by authenticated user or client IP.

Storage is in-process memory unless RATE_LIMIT_STORAGE_URI points to Redis,
which is needed when several workers serve the same shop.

Endpoint limits:
- /auth/login: 10 per 15 minutes (brute force protection)
- /auth/forgot-password: 3 per hour
- /auth/reset-password: 5 per hour
- /track: 5 per 5 minutes per IP (public lookups)
- /contact: 1 per minute per IP (public contact form)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from repairflow.core.config import settings
from repairflow.core.logging_config import logger


LOGIN_LIMIT = "10/15 minutes"
FORGOT_PASSWORD_LIMIT = "3/hour"
RESET_PASSWORD_LIMIT = "5/hour"
TRACKING_LIMIT = "5/5 minutes"
CONTACT_LIMIT = "1/minute"

_WINDOW_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
}


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key.

    1. Authenticated user ID (set on request.state by get_current_user)
    2. IP address
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


def get_client_ip(request: Request) -> str:
    """Key for public endpoints; always the client address"""
    return f"ip:{get_remote_address(request)}"


def retry_after_seconds(limit_text: str) -> int:
    """
    Seconds in the window of a limit such as "5 per 5 minute".

    Falls back to 60 when the text cannot be parsed.
    """
    parts = limit_text.replace("/", " per ").split()
    try:
        per_index = parts.index("per")
    except ValueError:
        return 60
    window = parts[per_index + 1:]
    if not window:
        return 60
    multiplier = 1
    if window[0].isdigit():
        multiplier = int(window[0])
        window = window[1:]
    if not window:
        return 60
    unit = window[0].rstrip("s")
    return multiplier * _WINDOW_SECONDS.get(unit, 60)


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 with a Retry-After header matching the exceeded window"""
    detail = str(exc.detail) if exc.detail else ""
    retry_after = retry_after_seconds(detail)

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)} on {request.url.path}: {detail}",
        extra={"event_type": "rate_limit", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please try again later.",
            "code": "RATE_LIMITED",
            "details": {"limit": detail, "retry_after_seconds": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )
