"""Concurrent diagnostic harness for a fleet of media-generation endpoints."""

from fleetprobe.models import Endpoint, ReferenceImage, RunState, RunStatus, WorkflowKind
from fleetprobe.orchestrator import Orchestrator
from fleetprobe.runner import EndpointRunner
from fleetprobe.store import RunStateStore

__all__ = [
    "Endpoint",
    "EndpointRunner",
    "Orchestrator",
    "ReferenceImage",
    "RunState",
    "RunStateStore",
    "RunStatus",
    "WorkflowKind",
]
