"""
Rate limiting configuration for the ZahnFlow API
"""

from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from zahnflow.core.config import settings


def get_real_ip(request: Request, trusted_hops: Optional[int] = None) -> str:
    """
    Get the client IP address.

    Proxy headers are only honoured when ``TRUSTED_PROXY_HOPS`` is set. The
    client can write anything into ``X-Forwarded-For``; only the entries
    appended by our own proxies (counted from the right) are trustworthy.
    """
    hops = settings.TRUSTED_PROXY_HOPS if trusted_hops is None else trusted_hops

    if hops > 0:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            chain = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
            if chain:
                return chain[max(len(chain) - hops, 0)]

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    # Direct connection IP
    return get_remote_address(request)


def create_limiter(storage_uri: Optional[str] = None) -> Limiter:
    """
    Limiter keyed by client IP.

    Counters live in Redis when a URL is given so all workers share them.
    If Redis is unreachable the limits keep applying from process memory.
    """
    return Limiter(
        key_func=get_real_ip,
        storage_uri=storage_uri or "memory://",
        in_memory_fallback_enabled=True,
    )


RATE_LIMIT_MESSAGES = {
    "default": "Zu viele Anfragen. Bitte warten Sie einen Moment und versuchen Sie es erneut.",
    "login": "Zu viele Anmeldeversuche. Bitte versuchen Sie es später erneut.",
}


def get_rate_limit_message(endpoint: str) -> str:
    """Get custom error message for rate limited endpoint"""
    return RATE_LIMIT_MESSAGES.get(endpoint, RATE_LIMIT_MESSAGES["default"])
