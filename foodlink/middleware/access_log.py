import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("foodlink.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status and latency."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        client = request.client.host if request.client else "-"
        logger.info(f"{client} {request.method} {request.url.path} -> {response.status_code} ({latency_ms} ms)")
        return response
