from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from offer_checker.errors import ApiError
from offer_checker.routes._deps import runtime_from_request, trace_id_from_request
from offer_checker.schemas import BidCreateRequest, success_envelope

router = APIRouter(prefix="/api/v1", tags=["bids"])


@router.post("/bids")
def create_bid(payload: BidCreateRequest, request: Request):
    runtime = runtime_from_request(request)
    bid = runtime.bids.create(bid=payload.model_dump())
    return JSONResponse(
        status_code=201,
        content=success_envelope(bid, trace_id_from_request(request)),
    )


@router.get("/bids/{bid_id}")
def get_bid(bid_id: str, request: Request):
    bid = runtime_from_request(request).bids.get(bid_id=bid_id)
    if bid is None:
        raise ApiError(
            code="BID_NOT_FOUND",
            message="bid not found",
            error_class="validation",
            retryable=False,
            http_status=404,
        )
    return success_envelope(bid, trace_id_from_request(request))


@router.get("/metrics")
def pipeline_metrics(request: Request):
    runtime = runtime_from_request(request)
    data = {
        "parser": runtime.parser.stats(),
        "pending_bids": runtime.bids.count_pending(),
        "unknown_verdict_bids": runtime.bids.count_unknown(),
        "vendor_offers": runtime.offers.count(),
    }
    return success_envelope(data, trace_id_from_request(request))
