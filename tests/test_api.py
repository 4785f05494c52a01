import asyncio
import time

import pytest
from fastapi.testclient import TestClient

import downpour.api.main as api_main
from downpour.api.jobs import RunManager
from downpour.config import LoadConfig
from downpour.core import LoadStressEngine
from downpour.metrics import build_load_report, build_wave_summary
from downpour.models import PhaseState, ProbeOutcome, ProgressEvent, StressReport


class FakeEngine(LoadStressEngine):
    """Engine that fabricates reports instead of sending traffic."""

    async def run_load(self, duration_seconds=10.0, requests_per_second=10):
        self.progress_callback(ProgressEvent("load", 0, requests_per_second, requests_per_second, 0, 0.0))
        outcomes = [ProbeOutcome(True, 10.0, 200)] * requests_per_second
        return build_load_report(outcomes, 1.0, target_route=self.target_route)

    async def run_stress(self, max_load=100, increment=10, error_threshold=30.0):
        self.progress_callback(ProgressEvent("stress", 0, increment, increment, 0, 0.0))
        wave = build_wave_summary(increment, [ProbeOutcome(True, 10.0, 200)] * increment)
        return StressReport(
            waves=(wave,),
            max_concurrency_reached=increment,
            target_route=self.target_route,
            terminal_state=PhaseState.MAX_LOAD_EXHAUSTED,
        )


class StuckEngine(FakeEngine):
    """Keeps 'sending batches' until cancelled."""

    async def run_load(self, duration_seconds=10.0, requests_per_second=10):
        while not self.killer.kill_now:
            await asyncio.sleep(0.01)
        return build_load_report([], 0.0, target_route=self.target_route, cancelled=True)


def make_client(monkeypatch, engine_factory):
    monkeypatch.setattr(api_main, "run_manager", RunManager(engine_factory=engine_factory))
    return TestClient(api_main.app)


def wait_for(client, run_id, statuses, attempts=100):
    for _ in range(attempts):
        body = client.get(f"/api/runs/{run_id}").json()
        if body["status"] in statuses:
            return body
        time.sleep(0.02)
    pytest.fail(f"run {run_id} never reached {statuses}")


def test_create_run_and_poll(monkeypatch):
    with make_client(monkeypatch, FakeEngine) as client:
        resp = client.post(
            "/api/runs",
            json={"base_url": "http://localhost:3001", "routes": ["/api/products", "/api/health"]},
        )
        assert resp.status_code == 200
        run_id = resp.json()["run_id"]
        assert resp.json()["target_route"] == "/api/health"

        body = wait_for(client, run_id, {"completed"})
        assert body["mode"] == "all"
        assert [r["type"] for r in body["results"]] == ["LOAD_TEST", "STRESS_TEST"]
        assert body["progress"]["phase"] == "stress"
        assert body["completed_at"] is not None

        listed = client.get("/api/runs").json()
        assert [r["id"] for r in listed] == [run_id]


def test_stress_only_run(monkeypatch):
    with make_client(monkeypatch, FakeEngine) as client:
        run_id = client.post(
            "/api/runs",
            json={"base_url": "http://localhost:3001", "mode": "stress", "increment": 5},
        ).json()["run_id"]
        body = wait_for(client, run_id, {"completed"})
        assert body["results"][0]["max_concurrency_reached"] == 5


@pytest.mark.parametrize(
    "payload",
    [
        {"base_url": "http://localhost:3001", "mode": "soak"},
        {"base_url": "localhost:3001"},
        {"base_url": "http://localhost:3001", "rps": 0},
        {"base_url": "http://localhost:3001", "increment": 0},
        {"base_url": "http://localhost:3001", "timeout": 0},
    ],
)
def test_invalid_runs_are_rejected(monkeypatch, payload):
    with make_client(monkeypatch, FakeEngine) as client:
        resp = client.post("/api/runs", json=payload)
        assert resp.status_code == 422
        assert client.get("/api/runs").json() == []


def test_unknown_run_returns_404(monkeypatch):
    with make_client(monkeypatch, FakeEngine) as client:
        assert client.get("/api/runs/missing").status_code == 404
        assert client.delete("/api/runs/missing").status_code == 404


def test_delete_cancels_active_run(monkeypatch):
    with make_client(monkeypatch, StuckEngine) as client:
        run_id = client.post(
            "/api/runs", json={"base_url": "http://localhost:3001", "mode": "load"}
        ).json()["run_id"]

        wait_for(client, run_id, {"running"})
        assert client.delete(f"/api/runs/{run_id}").json() == {"status": "cancelling"}
        body = wait_for(client, run_id, {"cancelled"})
        assert body["results"][0]["cancelled"] is True

        assert client.delete(f"/api/runs/{run_id}").json() == {"status": "deleted"}
        assert client.get(f"/api/runs/{run_id}").status_code == 404


@pytest.mark.parametrize(
    "payload",
    [
        {"base_url": "http://localhost:3001", "mode": "load", "increment": 0},
        {"base_url": "http://localhost:3001", "mode": "stress", "rps": 0},
    ],
)
def test_settings_of_skipped_phase_are_not_validated(monkeypatch, payload):
    with make_client(monkeypatch, FakeEngine) as client:
        resp = client.post("/api/runs", json=payload)
        assert resp.status_code == 200
        body = wait_for(client, resp.json()["run_id"], {"completed"})
        assert len(body["results"]) == 1


@pytest.mark.asyncio
async def test_cancel_while_pending_is_kept():
    manager = RunManager(engine_factory=StuckEngine)
    run_id = manager.create_run(
        mode="load",
        base_url="http://localhost:3001",
        routes=[],
        load=LoadConfig(1, 1),
        stress=None,
        timeout_s=5.0,
    )
    task = manager._tasks[run_id]
    assert manager.cancel_run(run_id)
    await task

    run = manager.get_run(run_id)
    assert run.status == "cancelled"
    assert run.results == []
    assert not manager.is_active(run_id)
    manager._cleanup_task.cancel()
