"""Response hardening for the Cycles API.

Every response gets the standard security headers.  Responses under the API
prefix carry cycle and symptom data, so they are additionally marked
``no-store``: neither browsers nor intermediaries may keep a copy of a
prediction or a widget payload.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

NO_STORE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store, max-age=0",
    "Pragma": "no-cache",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers, and ``no-store`` under ``private_prefix``."""

    def __init__(self, app: Any, private_prefix: str = "/api/") -> None:
        super().__init__(app)
        self._private_prefix = private_prefix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if request.url.path.startswith(self._private_prefix):
            for header, value in NO_STORE_HEADERS.items():
                response.headers[header] = value
        return response
