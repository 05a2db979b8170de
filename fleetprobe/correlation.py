"""
Correlation-ID propagation.

Each endpoint run gets its own id, stored in a context variable so that
every log line and outgoing call made by that run can carry it, along
with the id of the endpoint the run targets.  The FastAPI middleware
does the same for inbound requests: it reads ``X-Correlation-Id`` (or
creates a new UUID4) and echoes it back.
"""

from __future__ import annotations

import contextvars
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HEADER_NAME = "X-Correlation-Id"

_correlation_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="")
_endpoint_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("endpoint_id", default="")


def get_correlation_id() -> str:
    return _correlation_id_ctx.get("")


def set_correlation_id(value: str) -> None:
    _correlation_id_ctx.set(value)


def new_correlation_id() -> str:
    cid = str(uuid.uuid4())
    set_correlation_id(cid)
    return cid


def get_endpoint_id() -> str:
    return _endpoint_id_ctx.get("")


def set_endpoint_id(value: str) -> None:
    _endpoint_id_ctx.set(value)


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cid = request.headers.get(HEADER_NAME) or str(uuid.uuid4())
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers[HEADER_NAME] = cid
        return response
