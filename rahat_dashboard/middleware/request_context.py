"""
Request context middleware.

Reuses the caller's X-Request-ID (or mints one) and keeps it in a
ContextVar, so log lines and every call made to the Rahat backend while
serving the request carry the same id. Emits one access line per request,
tagged with the dashboard actor once the auth guard has resolved one.
"""

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    return _request_id_var.get()


def _actor(request: Request) -> str:
    state = getattr(request.state, "dashboard", None)
    if state is None:
        return "anonymous"
    return state.context.actor


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        token = _request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed = round((time.perf_counter() - start) * 1000, 2)
            actor = _actor(request)
            logger.info(
                "%s %s -> %s (%s, %.0fms)",
                request.method, request.url.path, response.status_code, actor, elapsed,
                extra={"duration_ms": elapsed, "status_code": response.status_code, "actor": actor},
            )
        finally:
            _request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
