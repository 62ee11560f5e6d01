from __future__ import annotations


def _create(client, **overrides):
    payload = {
        "proposal_id": "prop_1",
        "vendor_name": "Acme",
        "price_usd": 50000,
        "price_bol": 345000,
        "days": 30,
        "notes": "includes transport",
        "payment_preference": "transfer",
        "payment_terms": "30% advance",
    }
    payload.update(overrides)
    return client.post("/api/v1/bids", json=payload)


def test_create_bid_starts_pending(client, runtime):
    resp = _create(client)

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["bid_id"].startswith("bid_")
    assert data["ai_analysis"] is None
    assert runtime.bids.count_pending() == 1


def test_create_bid_rejects_invalid_payload(client, runtime):
    resp = _create(client, vendor_name="", price_usd=-1)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "REQ_VALIDATION_FAILED"
    assert runtime.bids.count_pending() == 0


def test_get_bid_reflects_worker_analysis(client, runtime):
    bid_id = _create(client).json()["data"]["bid_id"]
    runtime.create_worker(sleep=lambda _s: None).run_once()

    resp = client.get(f"/api/v1/bids/{bid_id}")

    assert resp.status_code == 200
    assert resp.json()["data"]["ai_analysis"]["verdict"] == "Fair"


def test_get_unknown_bid_returns_404(client):
    resp = client.get("/api/v1/bids/bid_missing")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BID_NOT_FOUND"


def test_metrics_report_backlog_and_fallbacks(client, runtime):
    _create(client)
    _create(client, vendor_name="Other")
    runtime.parser.parse("not json")

    resp = client.get("/api/v1/metrics")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["pending_bids"] == 2
    assert data["unknown_verdict_bids"] == 0
    assert data["vendor_offers"] == 0
    assert data["parser"]["parse_fallbacks"] == 1
