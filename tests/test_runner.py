"""
Unit tests – EndpointRunner state machine.

Coverage:
  - Missing credential → failed with zero network calls, duration still recorded
  - duration_seconds present only on terminal snapshots
  - Status never moves backwards across every published snapshot
  - Log lines carry a [HH:MM:SS] prefix; seed drawn from the injected RNG
  - Re-running an endpoint supersedes the earlier run's late snapshots
  - Unexpected exceptions still end in a failed state
  - Non-success HTTP answers log their status code
"""

import logging
import random
import re

import pytest

from fleetprobe.models import RunState, RunStatus
from fleetprobe.runner import MAX_SEED, timestamped
from tests.conftest import TOKEN, json_response

HOST = "s1.test"
IMAGE_OK = {"imagePanels": [{"generatedImages": [{"encodedImage": "abc123"}]}]}


def _record(store):
    seen: list[RunState] = []
    store.subscribe(lambda endpoint_id, state: seen.append(state))
    return seen


@pytest.mark.asyncio
async def test_missing_credential_fails_without_network(make_runner, fleet, store):
    state = await make_runner().run("T2I", "prompt", auth_token=None)

    assert state.status == RunStatus.FAILED
    assert state.error == "No Auth Token"
    assert state.duration_seconds is not None
    assert state.seed is None
    assert state.logs[-1].endswith("Error: No Personal Auth Token found.")
    assert fleet.requests == []
    assert store.get("s1") == state


@pytest.mark.asyncio
async def test_empty_credential_counts_as_missing(make_runner, fleet):
    state = await make_runner().run("I2V", "prompt", auth_token="")

    assert state.error == "No Auth Token"
    assert fleet.requests == []


@pytest.mark.asyncio
async def test_duration_only_on_terminal_snapshots(make_runner, fleet, store, png_image):
    fleet.add(HOST, "POST", "/api/imagen/upload", json_response({"mediaId": "m-1"}))
    fleet.add(HOST, "POST", "/api/imagen/run-recipe", json_response(IMAGE_OK))
    seen = _record(store)

    await make_runner().run("I2I", "edit", images=[png_image], auth_token=TOKEN)

    assert len(seen) > 3
    for snapshot in seen[:-1]:
        assert snapshot.duration_seconds is None
        assert not snapshot.status.is_terminal
    assert seen[-1].status == RunStatus.SUCCESS
    assert seen[-1].duration_seconds >= 0


@pytest.mark.asyncio
async def test_status_is_monotonic(make_runner, fleet, store, png_image):
    fleet.add(HOST, "POST", "/api/imagen/upload", json_response({"mediaId": "m-1"}))
    fleet.add(HOST, "POST", "/api/imagen/run-recipe", json_response({}, 500))
    seen = _record(store)

    await make_runner().run("I2I", "edit", images=[png_image], auth_token=TOKEN)

    statuses = [s.status for s in seen]
    assert statuses[0] == RunStatus.UPLOADING
    assert RunStatus.RUNNING in statuses
    assert statuses[-1] == RunStatus.FAILED
    ranks = [s.rank for s in statuses]
    assert ranks == sorted(ranks)


@pytest.mark.asyncio
async def test_t2i_starts_running(make_runner, fleet, store):
    fleet.add(HOST, "POST", "/api/imagen/generate", json_response(IMAGE_OK))
    seen = _record(store)

    await make_runner().run("T2I", "prompt", auth_token=TOKEN)

    assert seen[0].status == RunStatus.RUNNING
    assert seen[0].kind.value == "T2I"


@pytest.mark.asyncio
async def test_logs_are_timestamped_and_seed_from_rng(make_runner, fleet):
    fleet.add(HOST, "POST", "/api/imagen/generate", json_response(IMAGE_OK))

    state = await make_runner(rng=random.Random(7)).run("T2I", "prompt", auth_token=TOKEN)

    expected_seed = random.Random(7).randrange(MAX_SEED)
    assert state.seed == expected_seed
    assert 0 <= state.seed < MAX_SEED
    for line in state.logs:
        assert re.match(r"^\[\d{2}:\d{2}:\d{2}\] ", line)
    assert state.logs[0].endswith("Starting T2I test on https://s1.test...")
    assert state.logs[1].endswith(f"Random Seed: {expected_seed}")


def test_timestamped_format():
    assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] hello", timestamped("hello"))


@pytest.mark.asyncio
async def test_superseded_run_does_not_overwrite(make_runner, fleet, store):
    def restart_mid_flight(request):
        store.begin("s1", RunState(status=RunStatus.RUNNING))
        return json_response(IMAGE_OK)

    fleet.add(HOST, "POST", "/api/imagen/generate", restart_mid_flight)

    stale = await make_runner().run("T2I", "prompt", auth_token=TOKEN)

    assert stale.status == RunStatus.SUCCESS
    current = store.get("s1")
    assert current.status == RunStatus.RUNNING
    assert current.logs == ()
    assert current.result_payload is None


@pytest.mark.asyncio
async def test_rerun_overwrites_previous_state(make_runner, fleet, store):
    fleet.add(HOST, "POST", "/api/imagen/generate", json_response({}, 500), json_response(IMAGE_OK))
    runner = make_runner()

    first = await runner.run("T2I", "prompt", auth_token=TOKEN)
    second = await runner.run("T2I", "prompt", auth_token=TOKEN)

    assert first.status == RunStatus.FAILED
    assert second.status == RunStatus.SUCCESS
    assert second.error is None
    assert store.get("s1") == second
    assert not any("Error" in line for line in second.logs)


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_failure(make_runner, fleet):
    def explode(request):
        raise RuntimeError("handler crashed")

    fleet.add(HOST, "POST", "/api/imagen/generate", explode)

    state = await make_runner().run("T2I", "prompt", auth_token=TOKEN)

    assert state.status == RunStatus.FAILED
    assert state.error == "handler crashed"
    assert state.duration_seconds is not None


@pytest.mark.asyncio
async def test_unknown_workflow_rejected(make_runner):
    with pytest.raises(ValueError):
        await make_runner().run("T2V", "prompt", auth_token=TOKEN)


@pytest.mark.asyncio
async def test_http_failure_logs_status_code(make_runner, fleet, caplog):
    fleet.add(HOST, "POST", "/api/imagen/generate", json_response({"error": {"message": "Quota exceeded"}}, 429))
    caplog.set_level(logging.WARNING, logger="fleetprobe.runner")

    state = await make_runner().run("T2I", "prompt", auth_token=TOKEN)

    assert state.error == "Quota exceeded"
    assert "[s1] endpoint answered HTTP 429" in caplog.text
