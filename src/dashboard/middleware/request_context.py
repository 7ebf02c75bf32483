"""Request correlation middleware.

Binds a request id and the client address into the logging context for the
duration of a request and echoes the id back to the caller.
"""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from shared.observability import (
    RequestContextManager,
    get_logger,
    log_request_end,
    log_request_start,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "x-request-id"

# Probes are polled constantly; keep them out of the request log
QUIET_PATHS = frozenset({"/api/health", "/api/ready"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id to every request and log its lifecycle."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        client_ip = request.client.host if request.client else None
        request.state.request_id = request_id

        path = request.url.path
        quiet = path in QUIET_PATHS
        start = time.perf_counter()
        status_code = 500

        async with RequestContextManager(request_id=request_id, client_ip=client_ip):
            if not quiet:
                log_request_start(logger, request.method, path, client_ip)
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                if not quiet:
                    duration_ms = (time.perf_counter() - start) * 1000
                    log_request_end(logger, request.method, path, status_code, duration_ms)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
