"""
Per-endpoint run driver.

``EndpointRunner.run()`` owns one endpoint's state machine for one run:

    idle → (uploading →)? running → success | failed

It resets the endpoint's slot, draws the run seed, delegates the network
work to the workflow's adapter and converts whatever the adapter raises
into the terminal ``failed`` state.  Nothing raised by a workflow ever
leaves ``run()``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime
from typing import Awaitable, Callable, Sequence

import httpx

from fleetprobe.adapters import RunContext, get_adapter
from fleetprobe.config import POLL_INTERVAL, POLL_MAX_ATTEMPTS, REQUEST_TIMEOUT
from fleetprobe.correlation import new_correlation_id, set_endpoint_id
from fleetprobe.cropping import Cropper, center_crop
from fleetprobe.errors import CredentialMissing, HttpFailure, ProbeError
from fleetprobe.http_client import EndpointClient
from fleetprobe.models import Endpoint, ReferenceImage, RunResult, RunState, RunStatus, WorkflowKind
from fleetprobe.store import RunStateStore

logger = logging.getLogger(__name__)

MAX_SEED = 2147483647


def timestamped(message: str) -> str:
    return f"[{datetime.now().strftime('%H:%M:%S')}] {message}"


class RunTracker:
    """Builds one run's snapshots and publishes them under its generation."""

    def __init__(self, endpoint_id: str, store: RunStateStore):
        self.endpoint_id = endpoint_id
        self.store = store
        self.state = RunState()
        self.generation = 0
        self._started = time.monotonic()

    def begin(self, kind: WorkflowKind, status: RunStatus) -> None:
        self.state = RunState(status=status, kind=kind)
        self.generation = self.store.begin(self.endpoint_id, self.state)
        self._started = time.monotonic()

    @property
    def superseded(self) -> bool:
        return not self.store.is_current(self.endpoint_id, self.generation)

    def update(self, **changes) -> None:
        self.state = self.state.with_changes(**changes)
        self.store.publish(self.endpoint_id, self.generation, self.state)

    def log(self, message: str) -> None:
        logger.info("[%s] %s", self.endpoint_id, message)
        self.update(logs=self.state.logs + (timestamped(message),))

    def set_status(self, status: RunStatus) -> None:
        if status != self.state.status:
            self.update(status=status)

    def set_media_id(self, media_id: str) -> None:
        self.update(media_id=media_id)

    def elapsed(self) -> float:
        return round(time.monotonic() - self._started, 2)

    def succeed(self, result: RunResult) -> RunState:
        self.update(
            status=RunStatus.SUCCESS,
            result_kind=result.kind,
            result_payload=result.payload,
            result_content=result.content,
            duration_seconds=self.elapsed(),
        )
        return self.state

    def fail(self, message: str, log_line: str | None = None) -> RunState:
        self.update(
            status=RunStatus.FAILED,
            error=message,
            duration_seconds=self.elapsed(),
            logs=self.state.logs + (timestamped(log_line or f"Error: {message}"),),
        )
        logger.warning("[%s] run failed: %s", self.endpoint_id, message)
        return self.state


class EndpointRunner:
    def __init__(
        self,
        endpoint: Endpoint,
        store: RunStateStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cropper: Cropper = center_crop,
        timeout: float = REQUEST_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        poll_max_attempts: int = POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.endpoint = endpoint
        self.store = store
        self.transport = transport
        self.cropper = cropper
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.sleep = sleep
        self.rng = rng or random.Random()

    async def run(
        self,
        kind: WorkflowKind | str,
        prompt: str,
        images: Sequence[ReferenceImage | None] = (),
        auth_token: str | None = None,
    ) -> RunState:
        """Run one workflow against this endpoint and return its terminal state."""
        kind = WorkflowKind(kind)
        adapter = get_adapter(kind)
        new_correlation_id()
        set_endpoint_id(self.endpoint.id)

        tracker = RunTracker(self.endpoint.id, self.store)
        tracker.begin(kind, adapter.initial_status)
        tracker.log(f"Starting {kind.value} test on {self.endpoint.base_url}...")

        if not auth_token:
            return tracker.fail(CredentialMissing().detail, "Error: No Personal Auth Token found.")

        seed = self.rng.randrange(MAX_SEED)
        tracker.update(seed=seed)
        tracker.log(f"Random Seed: {seed}")

        try:
            async with EndpointClient(
                self.endpoint.base_url, auth_token, timeout=self.timeout, transport=self.transport
            ) as client:
                ctx = RunContext(
                    endpoint=self.endpoint,
                    client=client,
                    prompt=prompt,
                    images=images,
                    seed=seed,
                    log=tracker.log,
                    set_status=tracker.set_status,
                    set_media_id=tracker.set_media_id,
                    cropper=self.cropper,
                    poll_interval=self.poll_interval,
                    poll_max_attempts=self.poll_max_attempts,
                    sleep=self.sleep,
                )
                result = await adapter.execute(ctx)
        except HttpFailure as exc:
            logger.warning("[%s] endpoint answered HTTP %s", self.endpoint.id, exc.status_code)
            return tracker.fail(exc.detail)
        except ProbeError as exc:
            return tracker.fail(exc.detail)
        except httpx.HTTPError as exc:
            return tracker.fail(str(exc) or exc.__class__.__name__)
        except Exception as exc:
            logger.exception("[%s] unexpected error during %s run", self.endpoint.id, kind.value)
            return tracker.fail(str(exc) or exc.__class__.__name__)

        if tracker.superseded:
            logger.info("[%s] result discarded: run was superseded", self.endpoint.id)
        return tracker.succeed(result)
