"""
Integration tests – status API over FastAPI TestClient.

Coverage:
  - Lifespan: in-flight runs cancelled on shutdown
  - /healthz, /endpoints, correlation header echo
  - POST /runs/{kind}: 202, background fan-out observable via GET /runs
  - POST /runs/{kind}/{endpoint_id}: single-endpoint re-run
  - GET /runs/{id}/result: PNG download with Content-Disposition
  - Error envelope: 404 unknown endpoint / no result, 422 bad input
"""

import base64
import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from fleetprobe.api.main import create_app
from fleetprobe.models import Endpoint
from fleetprobe.orchestrator import Orchestrator
from tests.conftest import TOKEN, json_response, make_png

PNG = make_png()
IMAGE_OK = {"imagePanels": [{"generatedImages": [{"encodedImage": base64.b64encode(PNG).decode()}]}]}
AUTH = {"Authorization": f"Bearer {TOKEN}"}

ENDPOINTS = [
    Endpoint(id="s1", name="Server S1", base_url="https://s1.test"),
    Endpoint(id="s2", name="Server S2", base_url="https://s2.test"),
]


@pytest.fixture
def client(fleet, sleeper):
    app = create_app(Orchestrator(ENDPOINTS, transport=fleet.transport, sleep=sleeper))
    with TestClient(app) as c:
        yield c


def _wait_terminal(client, endpoint_ids=("s1", "s2"), timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        items = client.get("/runs").json()["items"]
        if all(items[eid]["status"] in ("success", "failed") for eid in endpoint_ids):
            return items
        time.sleep(0.02)
    raise AssertionError("runs did not finish in time")


def test_lifespan_shuts_down_orchestrator(fleet):
    orchestrator = Orchestrator(ENDPOINTS, transport=fleet.transport)
    with patch.object(orchestrator, "shutdown", new_callable=AsyncMock) as shutdown:
        with TestClient(create_app(orchestrator)) as c:
            assert c.get("/healthz").status_code == 200
            shutdown.assert_not_awaited()
        shutdown.assert_awaited_once()


def test_healthz_echoes_correlation_id(client):
    resp = client.get("/healthz", headers={"X-Correlation-Id": "abc-123"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Correlation-Id"] == "abc-123"


def test_list_endpoints(client):
    resp = client.get("/endpoints")
    assert resp.json() == [
        {"id": "s1", "name": "Server S1", "base_url": "https://s1.test"},
        {"id": "s2", "name": "Server S2", "base_url": "https://s2.test"},
    ]


def test_initial_runs_idle(client):
    items = client.get("/runs").json()["items"]
    assert {eid: s["status"] for eid, s in items.items()} == {"s1": "idle", "s2": "idle"}


def test_fan_out_and_download(client, fleet):
    fleet.add("s1.test", "POST", "/api/imagen/generate", json_response(IMAGE_OK))
    fleet.add("s2.test", "POST", "/api/imagen/generate", json_response({"error": {"message": "Server busy"}}, 500))

    resp = client.post("/runs/T2I", json={"prompt": "a red square"}, headers=AUTH)
    assert resp.status_code == 202
    assert resp.json() == {"workflow": "T2I", "endpoint_ids": ["s1", "s2"]}

    items = _wait_terminal(client)
    assert items["s1"]["status"] == "success"
    assert items["s1"]["kind"] == "T2I"
    assert "result_content" not in items["s1"]
    assert items["s2"]["status"] == "failed"
    assert items["s2"]["error"] == "Server busy"
    assert fleet.bodies("s1.test", "/api/imagen/generate")[0]["prompt"] == "a red square"

    result = client.get("/runs/s1/result")
    assert result.status_code == 200
    assert result.headers["content-type"] == "image/png"
    assert result.headers["content-disposition"] == 'attachment; filename="server-s1.png"'
    assert result.content == PNG

    missing = client.get("/runs/s2/result")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_preset_prompt_used_when_prompt_missing(client, fleet):
    fleet.add("s1.test", "POST", "/api/imagen/generate", json_response(IMAGE_OK))
    fleet.add("s2.test", "POST", "/api/imagen/generate", json_response(IMAGE_OK))

    client.post("/runs/T2I", json={"language": "Bahasa Malaysia"}, headers=AUTH)
    _wait_terminal(client)

    assert fleet.bodies("s1.test", "/api/imagen/generate")[0]["prompt"].startswith("Paparan sinematik")


def test_missing_token_fails_runs(client, fleet):
    resp = client.post("/runs/I2V", json={"prompt": "p", "images": [{"data": base64.b64encode(PNG).decode()}]})
    assert resp.status_code == 202

    items = _wait_terminal(client)
    assert all(items[eid]["error"] == "No Auth Token" for eid in ("s1", "s2"))
    assert fleet.requests == []


def test_single_endpoint_rerun(client, fleet):
    fleet.add("s2.test", "POST", "/api/imagen/generate", json_response(IMAGE_OK))

    resp = client.post("/runs/T2I/s2", json={"prompt": "p"}, headers=AUTH)
    assert resp.status_code == 202
    assert resp.json()["endpoint_ids"] == ["s2"]

    _wait_terminal(client, endpoint_ids=("s2",))
    assert client.get("/runs/s1").json()["status"] == "idle"
    assert client.get("/runs/s2").json()["status"] == "success"
    assert fleet.calls("s1.test") == []


def test_unknown_endpoint(client):
    resp = client.get("/runs/s9")
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "Endpoint s9 not found"}
    assert client.post("/runs/T2I/s9", json={}, headers=AUTH).status_code == 404


def test_invalid_inputs(client):
    assert client.post("/runs/T2V", json={}, headers=AUTH).status_code == 422

    bad_image = client.post("/runs/I2I", json={"images": [{"data": "!!not-base64!!"}]}, headers=AUTH)
    assert bad_image.status_code == 422
    assert bad_image.json()["error"] == "validation_error"

    too_many = {"images": [{"data": "AAAA"}, {"data": "AAAA"}, {"data": "AAAA"}]}
    assert client.post("/runs/I2I", json=too_many, headers=AUTH).status_code == 422

    unknown_lang = client.post("/runs/T2I", json={"language": "Klingon"}, headers=AUTH)
    assert unknown_lang.status_code == 422
