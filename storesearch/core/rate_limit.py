"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from starlette.requests import Request

SEARCH_RATE_LIMIT = "120/minute"


def _get_real_client_ip(request: Request) -> str:
    """Extract the real client IP behind Cloudflare Tunnel / reverse proxy.

    Client-chosen values such as ``X-Session-ID`` never pick the bucket.
    """
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or (request.client.host if request.client else "127.0.0.1")
    )


limiter = Limiter(key_func=_get_real_client_ip)
