"""CORS middleware that reflects allow-listed origins.

Origins outside the allow-list get ``*``; this is not an access control
boundary. Preflight requests are answered here without reaching a route.
"""

from typing import Dict, Iterable, Optional

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOW_METHODS = "POST, OPTIONS"


def cors_headers(origin: Optional[str], allowed_origins: Iterable[str]) -> Dict[str, str]:
    allowed = {o for o in allowed_origins if o}
    return {
        "Access-Control-Allow-Origin": origin if origin in allowed else "*",
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Vary": "Origin",
    }


class OriginReflectingCORSMiddleware(BaseHTTPMiddleware):
    """Attach CORS headers to every response and answer OPTIONS with ``ok``."""

    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str]):
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)

    async def dispatch(self, request: Request, call_next):
        headers = cors_headers(request.headers.get("origin"), self.allowed_origins)

        if request.method == "OPTIONS":
            return PlainTextResponse("ok", headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
