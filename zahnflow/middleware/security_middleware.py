"""
Security middleware for the ZahnFlow API
Handles security headers and request logging
"""

from fastapi import Request, Response
import time
import logging
from typing import Callable

from zahnflow.core.rate_limit_config import get_real_ip

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

# Never echo credentials into the log
SENSITIVE_PATHS = {"/api/auth/login"}


class SecurityHeadersMiddleware:
    """Adds security headers and logs slow requests"""

    def __init__(self, slow_request_seconds: float = 1.0):
        self.slow_request_seconds = slow_request_seconds

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        # Remove server header if present
        if "Server" in response.headers:
            del response.headers["Server"]

        if process_time > self.slow_request_seconds:
            logger.warning(f"⏱️ Slow request: {request.url.path} took {process_time:.2f}s")

        return response


class RequestLogger:
    """Request logging with security focus"""

    def __init__(self):
        self.request_counts = {}  # IP -> count
        self.start_time = time.time()

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        client_ip = get_real_ip(request)
        self.request_counts[client_ip] = self.request_counts.get(client_ip, 0) + 1

        path = request.url.path
        if path in SENSITIVE_PATHS:
            logger.info(f"📥 Request: {request.method} {path} from {client_ip}")
        else:
            logger.debug(f"📥 Request: {request.method} {path}")

        response = await call_next(request)

        if response.status_code == 401:
            logger.warning(f"🔓 Unauthorized request from {client_ip} to {path}")

        return response

    def get_stats(self) -> dict:
        """Get request statistics"""
        uptime = time.time() - self.start_time
        total_requests = sum(self.request_counts.values())

        return {
            "uptime_seconds": uptime,
            "total_requests": total_requests,
            "unique_ips": len(self.request_counts),
        }
