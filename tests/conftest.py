"""Test fixtures: scripted endpoints over httpx.MockTransport, no real sleeps."""

import os

os.environ["LOG_FORMAT"] = "text"
os.environ["FLEETPROBE_ENDPOINTS"] = ""

import io
import json
from collections import defaultdict

import httpx
import pytest
from PIL import Image

from fleetprobe.models import Endpoint, ReferenceImage
from fleetprobe.runner import EndpointRunner
from fleetprobe.store import RunStateStore

TOKEN = "test-token"


def make_png(width: int = 8, height: int = 8, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def json_response(body, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=body)


class FakeFleet:
    """Scripted transport shared by any number of endpoints.

    Responses are registered per ``(host, method, path)``; each call pops the
    next one, and the last one keeps being replayed.  A registered exception
    is raised instead of answering; a callable is called with the request.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str, str], list] = defaultdict(list)
        self.requests: list[httpx.Request] = []

    def add(self, host: str, method: str, path: str, *responses) -> "FakeFleet":
        self.routes[(host, method, path)].extend(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.url.host, request.method, request.url.path)
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, json={"error": {"message": f"no route for {key}"}})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, host: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (host is None or r.url.host == host) and (path is None or r.url.path == path)
        ]

    def bodies(self, host: str, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls(host, path)]


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fleet() -> FakeFleet:
    return FakeFleet()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint(id="s1", name="Server S1", base_url="https://s1.test")


@pytest.fixture
def store(endpoint) -> RunStateStore:
    return RunStateStore([endpoint.id])


@pytest.fixture
def make_runner(endpoint, store, fleet, sleeper):
    def _make(**overrides) -> EndpointRunner:
        options = {
            "transport": fleet.transport,
            "poll_interval": 5.0,
            "poll_max_attempts": 120,
            "sleep": sleeper,
        }
        options.update(overrides)
        return EndpointRunner(endpoint, store, **options)

    return _make


@pytest.fixture
def png_image() -> ReferenceImage:
    return ReferenceImage(data=make_png(), mime_type="image/png")
