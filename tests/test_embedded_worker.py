from __future__ import annotations

import pathlib
import runpy
import time

import pytest
from fastapi.testclient import TestClient

from fakes import FakeReasoningClient, make_runtime
from offer_checker.config import AppConfig
from offer_checker.main import create_app

ROOT = pathlib.Path(__file__).resolve().parents[1]


def _config(tmp_path, *, embedded_worker: bool) -> AppConfig:
    return AppConfig(
        vendor_agent_id="asst_test",
        object_storage_root=str(tmp_path / "uploads"),
        poll_max_attempts=5,
        worker_idle_interval_ms=10,
        worker_error_backoff_ms=10,
        embedded_worker=embedded_worker,
    )


def _wait_for_analysis(client: TestClient, bid_id: str, timeout_s: float = 5.0) -> dict | None:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        analysis = client.get(f"/api/v1/bids/{bid_id}").json()["data"]["ai_analysis"]
        if analysis is not None:
            return analysis
        time.sleep(0.01)
    return None


def test_api_process_runs_worker_for_bids_it_accepts(tmp_path):
    fake = FakeReasoningClient()
    runtime = make_runtime(tmp_path, client=fake, config=_config(tmp_path, embedded_worker=True))
    app = create_app(runtime)

    with TestClient(app) as client:
        resp = client.post(
            "/api/v1/bids",
            json={"proposal_id": "prop_1", "vendor_name": "Acme", "price_usd": 50000, "days": 30},
        )
        assert resp.status_code == 201
        analysis = _wait_for_analysis(client, resp.json()["data"]["bid_id"])
        worker_thread = app.state.worker_thread
        assert worker_thread.is_alive()

    assert analysis is not None
    assert analysis["verdict"] == "Fair"
    assert app.state.worker.stop_event.is_set()
    assert not worker_thread.is_alive()
    assert fake.names() == ["chat.completions.create"]


def test_no_background_worker_unless_enabled(tmp_path):
    runtime = make_runtime(tmp_path, config=_config(tmp_path, embedded_worker=False))
    app = create_app(runtime)

    with TestClient(app) as client:
        resp = client.post("/api/v1/bids", json={"proposal_id": "prop_1", "vendor_name": "Acme"})
        assert resp.status_code == 201

    assert app.state.worker is None
    assert runtime.bids.count_pending() == 1


def test_embedded_worker_defaults_follow_store_backend():
    assert AppConfig.from_env({}).embedded_worker is True
    postgres = AppConfig.from_env({"BID_STORE_BACKEND": "postgres", "POSTGRES_DSN": "postgresql://db/x"})
    assert postgres.embedded_worker is False
    assert AppConfig.from_env({"EMBEDDED_WORKER": "false"}).embedded_worker is False


def test_standalone_worker_refuses_memory_backend(monkeypatch):
    monkeypatch.delenv("BID_STORE_BACKEND", raising=False)
    monkeypatch.setattr("sys.argv", ["run_worker.py", "--iterations", "1"])
    script = runpy.run_path(str(ROOT / "scripts" / "run_worker.py"))

    with pytest.raises(SystemExit, match="BID_STORE_BACKEND=postgres"):
        script["main"]()
