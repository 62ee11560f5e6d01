from __future__ import annotations

from fakes import VALID_REPLY, FakeReasoningClient, RecordingSleep, make_runtime
from offer_checker.errors import PersistenceFailure
from offer_checker.repositories import InMemoryBidsRepository
from offer_checker.worker_runtime import WorkerState


def _seed(runtime, vendor_name: str = "Acme", created_at: str = "2025-01-01T00:00:00+00:00", **extra) -> str:
    bid = runtime.bids.create(
        bid={
            "proposal_id": "prop_1",
            "vendor_name": vendor_name,
            "price_usd": 50000,
            "days": 30,
            "created_at": created_at,
            **extra,
        }
    )
    return bid["bid_id"]


def test_worker_analyzes_pending_bid_and_does_not_reclaim_it(tmp_path):
    fake = FakeReasoningClient()
    runtime = make_runtime(tmp_path, client=fake)
    bid_id = _seed(runtime)
    worker = runtime.create_worker(sleep=RecordingSleep())

    assert worker.run_once() == "processed"
    stored = runtime.bids.get(bid_id=bid_id)["ai_analysis"]
    assert stored["verdict"] in {"Fair", "Overpriced", "Suspicious"}
    assert stored["verdict"] == "Fair"

    assert worker.run_once() == "idle"
    assert fake.names() == ["chat.completions.create"]
    assert worker.stats.as_dict() == {
        "cycles": 2,
        "idle": 1,
        "processed": 1,
        "succeeded": 1,
        "failed": 0,
        "parse_fallbacks": 0,
    }
    assert worker.state == WorkerState.IDLE


def test_worker_processes_bids_oldest_first(tmp_path):
    runtime = make_runtime(tmp_path)
    newer = _seed(runtime, vendor_name="Newer", created_at="2025-02-01T00:00:00+00:00")
    older = _seed(runtime, vendor_name="Older", created_at="2025-01-01T00:00:00+00:00")
    worker = runtime.create_worker(sleep=RecordingSleep())

    worker.run_once()
    assert runtime.bids.get(bid_id=older)["ai_analysis"] is not None
    assert runtime.bids.get(bid_id=newer)["ai_analysis"] is None


def test_worker_stores_unknown_sentinel_for_malformed_reply(tmp_path):
    fake = FakeReasoningClient(chat_replies=["Sure! The bid looks fair."])
    runtime = make_runtime(tmp_path, client=fake)
    bid_id = _seed(runtime)
    worker = runtime.create_worker(sleep=RecordingSleep())

    assert worker.run_once() == "processed"
    assert runtime.bids.get(bid_id=bid_id)["ai_analysis"] == {
        "verdict": "Unknown",
        "reasoning": "invalid response",
        "suggestions": [],
    }
    assert worker.stats.parse_fallbacks == 1
    assert runtime.parser.fallback_count == 1
    assert runtime.bids.count_unknown() == 1


def test_worker_backs_off_after_network_error_and_retries_same_bid(tmp_path):
    fake = FakeReasoningClient(chat_replies=[ConnectionError("connection reset"), VALID_REPLY])
    runtime = make_runtime(tmp_path, client=fake)
    bid_id = _seed(runtime)
    sleep = RecordingSleep()
    worker = runtime.create_worker(sleep=sleep)

    stats = worker.run_forever(stop_after_iterations=2)

    assert sleep.calls == [10.0]
    assert fake.names() == ["chat.completions.create", "chat.completions.create"]
    first_prompt = fake.calls[0][1]["messages"][-1]["content"]
    second_prompt = fake.calls[1][1]["messages"][-1]["content"]
    assert first_prompt == second_prompt
    assert runtime.bids.get(bid_id=bid_id)["ai_analysis"]["verdict"] == "Fair"
    assert stats["failed"] == 1
    assert stats["succeeded"] == 1
    assert "InvocationFailure" in worker.last_error


def test_worker_error_state_is_backoff(tmp_path):
    fake = FakeReasoningClient(chat_replies=[ConnectionError("down")])
    runtime = make_runtime(tmp_path, client=fake)
    _seed(runtime)
    worker = runtime.create_worker(sleep=RecordingSleep())

    assert worker.run_once() == "error"
    assert worker.state == WorkerState.ERROR_BACKOFF
    assert runtime.bids.count_pending() == 1


def test_worker_waits_idle_interval_when_nothing_pending(tmp_path):
    runtime = make_runtime(tmp_path)
    sleep = RecordingSleep()
    worker = runtime.create_worker(sleep=sleep)

    stats = worker.run_forever(stop_after_iterations=3)

    assert sleep.calls == [5.0, 5.0]
    assert stats["idle"] == 3


def test_worker_stops_when_stop_event_set(tmp_path):
    runtime = make_runtime(tmp_path)
    worker = runtime.create_worker()

    def _stop_on_sleep(_seconds: float) -> None:
        worker.stop()

    worker._sleep = _stop_on_sleep
    stats = worker.run_forever()

    assert worker.stop_event.is_set()
    assert stats["cycles"] == 1


def test_worker_uses_document_flow_for_bids_with_attachment(tmp_path):
    fake = FakeReasoningClient(run_statuses=["queued", "in_progress", "completed"])
    poll_sleep = RecordingSleep()
    runtime = make_runtime(tmp_path, client=fake, poll_sleep=poll_sleep)
    document_uri = runtime.storage.put_object(
        object_type="bids",
        object_id="bid_doc",
        filename="quote.pdf",
        content_bytes=b"%PDF-1.4 quote",
        content_type="application/pdf",
    )
    bid_id = _seed(runtime, document_uri=document_uri)
    worker = runtime.create_worker(sleep=RecordingSleep())

    assert worker.run_once() == "processed"
    assert poll_sleep.calls == [1.2, 1.2]
    assert "chat.completions.create" not in fake.names()
    assert fake.calls[0] == ("files.create", {"filename": "quote.pdf", "purpose": "assistants"})
    assert runtime.bids.get(bid_id=bid_id)["ai_analysis"]["verdict"] == "Fair"


def test_worker_leaves_bid_pending_when_store_write_fails(tmp_path):
    class FailingBids(InMemoryBidsRepository):
        def save_analysis(self, *, bid_id, analysis):
            raise PersistenceFailure("database unavailable")

    bids = FailingBids()
    runtime = make_runtime(tmp_path, bids=bids)
    _seed(runtime)
    worker = runtime.create_worker(sleep=RecordingSleep())

    assert worker.run_once() == "error"
    assert bids.count_pending() == 1
    assert "database unavailable" in worker.last_error
