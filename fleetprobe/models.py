"""Domain models: endpoints, reference images, run state snapshots."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from pydantic import BaseModel, Field

from fleetprobe.config import ENDPOINTS


class WorkflowKind(str, enum.Enum):
    TEXT_TO_IMAGE = "T2I"
    IMAGE_TO_IMAGE = "I2I"
    IMAGE_TO_VIDEO = "I2V"


class RunStatus(str, enum.Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.FAILED)

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    RunStatus.IDLE: 0,
    RunStatus.UPLOADING: 1,
    RunStatus.RUNNING: 2,
    RunStatus.SUCCESS: 3,
    RunStatus.FAILED: 3,
}


class ResultKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class Endpoint:
    id: str
    name: str
    base_url: str


@dataclass(frozen=True)
class ReferenceImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class RunResult:
    """What a successful workflow hands back to the runner."""

    kind: ResultKind
    payload: str
    content: bytes | None = None


class RunState(BaseModel):
    """Immutable snapshot of one endpoint's current (or last) run."""

    status: RunStatus = RunStatus.IDLE
    kind: WorkflowKind | None = None
    logs: tuple[str, ...] = ()
    seed: int | None = None
    media_id: str | None = None
    result_kind: ResultKind | None = None
    result_payload: str | None = None
    result_content: bytes | None = Field(default=None, exclude=True, repr=False)
    error: str | None = None
    duration_seconds: float | None = None

    model_config = {"frozen": True}

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def with_changes(self, **changes) -> "RunState":
        return self.model_copy(update=changes)


def default_endpoints() -> list[Endpoint]:
    return [Endpoint(id=eid, name=name, base_url=url) for eid, name, url in ENDPOINTS]
