"""
Error taxonomy and FastAPI exception handlers.

Every failure inside an endpoint workflow is a :class:`ProbeError`
subclass; the runner turns it into that endpoint's terminal ``failed``
state using ``detail`` as the human-readable message.

The API registers the handlers below so error responses share one shape:

    { "error": "<type>", "detail": "<message>" }
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ── Workflow errors ────────────────────────────────────────────────────

class ProbeError(Exception):
    """Generic workflow failure."""

    def __init__(self, detail: str = "Probe failed"):
        super().__init__(detail)
        self.detail = detail


class CredentialMissing(ProbeError):
    """No bearer token available; nothing was sent."""

    def __init__(self, detail: str = "No Auth Token"):
        super().__init__(detail)


class HttpFailure(ProbeError):
    """Endpoint answered with a non-success status."""

    def __init__(self, detail: str = "Fetch failed", status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code


class MissingField(ProbeError):
    """Response succeeded but the expected data is absent."""


class TransientPollFailure(ProbeError):
    """A single status check failed; the poll loop moves on."""


class OperationError(ProbeError):
    """The polled operation reported its own failure."""

    def __init__(self, detail: str = "Generation error"):
        super().__init__(detail)


class PollTimeout(ProbeError):
    """Polling exhausted its attempts without a result."""

    def __init__(self, detail: str = "Polling timed out"):
        super().__init__(detail)


class CropError(ProbeError):
    """Image could not be cropped to the requested aspect ratio."""

    def __init__(self, detail: str = "Crop failed"):
        super().__init__(detail)


class DownloadFailure(ProbeError):
    """Result URL was found but its content could not be fetched."""

    def __init__(self, detail: str = "Failed to download video blob"):
        super().__init__(detail)


# ── Harness errors ─────────────────────────────────────────────────────

class NotFoundError(ProbeError):
    """Unknown endpoint or missing result (404)."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class WorkflowError(ProbeError):
    """Invalid status transition (409)."""

    def __init__(self, detail: str = "Invalid workflow transition"):
        super().__init__(detail)


# ── Handlers ───────────────────────────────────────────────────────────

def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "not_found", "detail": exc.detail})

    @app.exception_handler(WorkflowError)
    async def _workflow(request: Request, exc: WorkflowError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": "workflow_error", "detail": exc.detail})

    @app.exception_handler(ProbeError)
    async def _probe(request: Request, exc: ProbeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "probe_error", "detail": exc.detail})

    @app.exception_handler(ValueError)
    async def _value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": "validation_error", "detail": str(exc)})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger("fleetprobe.errors").exception("Unhandled exception on %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_server_error", "detail": "An unexpected error occurred"},
        )
