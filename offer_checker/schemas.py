from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

VERDICT_CATEGORIES: tuple[str, ...] = ("Fair", "Overpriced", "Suspicious")

UNKNOWN_VERDICT: dict[str, Any] = {
    "verdict": "Unknown",
    "reasoning": "invalid response",
    "suggestions": [],
}


class Verdict(BaseModel):
    # Extra keys (per-item price comparisons from the document assistant) ride along.
    model_config = ConfigDict(extra="allow")

    verdict: Literal["Fair", "Overpriced", "Suspicious"]
    reasoning: str
    suggestions: list[str] = Field(default_factory=list)


class BidCreateRequest(BaseModel):
    proposal_id: str = Field(min_length=1)
    vendor_name: str = Field(min_length=1)
    price_usd: float | None = Field(default=None, ge=0)
    price_bol: float | None = Field(default=None, ge=0)
    days: int | None = Field(default=None, ge=0)
    notes: str = ""
    payment_preference: str | None = None
    payment_terms: str | None = None


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
