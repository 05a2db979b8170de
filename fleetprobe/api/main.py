"""Status API – FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleetprobe.api.routers.health import router as health_router
from fleetprobe.api.routers.runs import router as runs_router
from fleetprobe.config import SERVICE_NAME
from fleetprobe.correlation import CorrelationMiddleware
from fleetprobe.errors import register_error_handlers
from fleetprobe.logging import setup_logging
from fleetprobe.orchestrator import Orchestrator


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Cancel in-flight fan-outs on shutdown."""
        yield
        await app.state.orchestrator.shutdown()

    app = FastAPI(
        title="Fleet Probe",
        description="Concurrent T2I / I2I / I2V diagnostics across the endpoint fleet",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or Orchestrator()

    app.add_middleware(CorrelationMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(runs_router)
    return app


setup_logging(SERVICE_NAME)
app = create_app()
