"""Run endpoints – fan-out, single-endpoint re-run, live state and results."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request, Response

from fleetprobe.api.schemas import EndpointResponse, RunAccepted, RunRequest, RunStateListResponse
from fleetprobe.config import preset_prompt
from fleetprobe.errors import NotFoundError
from fleetprobe.models import RunState, WorkflowKind
from fleetprobe.orchestrator import Orchestrator
from fleetprobe.report import media_bytes

router = APIRouter(tags=["runs"])

_MEDIA_TYPES = {"png": "image/png", "mp4": "video/mp4"}


def _orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _inputs(body: RunRequest) -> tuple[str, list]:
    prompt = body.prompt or preset_prompt(body.language)
    images = [img.to_reference() if img is not None else None for img in body.images]
    return prompt, images


@router.get("/endpoints", response_model=list[EndpointResponse])
async def list_endpoints(orch: Orchestrator = Depends(_orchestrator)):
    return [EndpointResponse.from_model(ep) for ep in orch.endpoints]


@router.get("/runs", response_model=RunStateListResponse)
async def list_runs(orch: Orchestrator = Depends(_orchestrator)):
    return RunStateListResponse(items=orch.store.snapshot())


@router.get("/runs/{endpoint_id}", response_model=RunState)
async def get_run(endpoint_id: str, orch: Orchestrator = Depends(_orchestrator)):
    return orch.store.get(endpoint_id)


@router.get("/runs/{endpoint_id}/result")
async def get_result(endpoint_id: str, orch: Orchestrator = Depends(_orchestrator)):
    """Download the last successful result as PNG or MP4 bytes."""
    media = media_bytes(orch.store.get(endpoint_id))
    if media is None:
        raise NotFoundError(f"No result for endpoint {endpoint_id}")
    data, ext = media
    return Response(
        content=data,
        media_type=_MEDIA_TYPES[ext],
        headers={"Content-Disposition": f'attachment; filename="server-{endpoint_id}.{ext}"'},
    )


@router.post("/runs/{kind}", status_code=202, response_model=RunAccepted)
async def run_all(
    kind: WorkflowKind,
    body: RunRequest,
    authorization: str | None = Header(None),
    orch: Orchestrator = Depends(_orchestrator),
):
    """Start *kind* on every endpoint; returns immediately."""
    prompt, images = _inputs(body)
    orch.launch(kind, prompt, images, _bearer(authorization))
    return RunAccepted(workflow=kind.value, endpoint_ids=[ep.id for ep in orch.endpoints])


@router.post("/runs/{kind}/{endpoint_id}", status_code=202, response_model=RunAccepted)
async def run_one(
    kind: WorkflowKind,
    endpoint_id: str,
    body: RunRequest,
    authorization: str | None = Header(None),
    orch: Orchestrator = Depends(_orchestrator),
):
    """Re-run *kind* on a single endpoint, overwriting its previous state."""
    prompt, images = _inputs(body)
    orch.launch_one(endpoint_id, kind, prompt, images, _bearer(authorization))
    return RunAccepted(workflow=kind.value, endpoint_ids=[endpoint_id])
