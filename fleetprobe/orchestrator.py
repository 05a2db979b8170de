"""
Fan-out of one workflow to every configured endpoint.

All endpoint runs are started together inside one ``asyncio.TaskGroup``:
no ordering, no concurrency limit, no dependency between endpoints.  A
run never raises (see :mod:`fleetprobe.runner`), so one endpoint's
failure cannot cancel its peers; cancelling the group cancels them all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Sequence

from fleetprobe.errors import NotFoundError
from fleetprobe.models import Endpoint, ReferenceImage, RunState, WorkflowKind, default_endpoints
from fleetprobe.runner import EndpointRunner
from fleetprobe.store import RunStateStore

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        endpoints: Iterable[Endpoint] | None = None,
        store: RunStateStore | None = None,
        **runner_options: Any,
    ):
        self.endpoints: list[Endpoint] = list(endpoints) if endpoints is not None else default_endpoints()
        self.store = store or RunStateStore(ep.id for ep in self.endpoints)
        self.runners: dict[str, EndpointRunner] = {
            ep.id: EndpointRunner(ep, self.store, **runner_options) for ep in self.endpoints
        }
        self._background: set[asyncio.Task] = set()

    def runner(self, endpoint_id: str) -> EndpointRunner:
        try:
            return self.runners[endpoint_id]
        except KeyError:
            raise NotFoundError(f"Endpoint {endpoint_id} not found") from None

    async def run_all(
        self,
        kind: WorkflowKind | str,
        prompt: str,
        images: Sequence[ReferenceImage | None] = (),
        auth_token: str | None = None,
    ) -> dict[str, RunState]:
        """Run *kind* on every endpoint concurrently; wait for all to finish."""
        kind = WorkflowKind(kind)
        logger.info("Fan-out %s to %d endpoint(s)", kind.value, len(self.endpoints))
        async with asyncio.TaskGroup() as tg:
            tasks = {
                ep.id: tg.create_task(
                    self.runners[ep.id].run(kind, prompt, images, auth_token),
                    name=f"{kind.value}:{ep.id}",
                )
                for ep in self.endpoints
            }
        return {eid: task.result() for eid, task in tasks.items()}

    async def run_one(
        self,
        endpoint_id: str,
        kind: WorkflowKind | str,
        prompt: str,
        images: Sequence[ReferenceImage | None] = (),
        auth_token: str | None = None,
    ) -> RunState:
        return await self.runner(endpoint_id).run(kind, prompt, images, auth_token)

    def launch(
        self,
        kind: WorkflowKind | str,
        prompt: str,
        images: Sequence[ReferenceImage | None] = (),
        auth_token: str | None = None,
    ) -> asyncio.Task:
        """Start :meth:`run_all` in the background and return its task."""
        return self._spawn(self.run_all(kind, prompt, images, auth_token), f"fanout:{WorkflowKind(kind).value}")

    def launch_one(
        self,
        endpoint_id: str,
        kind: WorkflowKind | str,
        prompt: str,
        images: Sequence[ReferenceImage | None] = (),
        auth_token: str | None = None,
    ) -> asyncio.Task:
        self.runner(endpoint_id)
        return self._spawn(self.run_one(endpoint_id, kind, prompt, images, auth_token), f"rerun:{endpoint_id}")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def shutdown(self) -> None:
        """Cancel every background fan-out still in flight."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
