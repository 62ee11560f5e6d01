from __future__ import annotations

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from offer_checker.runtime import Runtime
from offer_checker.schemas import error_envelope


def trace_id_from_request(request: Request) -> str:
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        return trace_id
    return uuid.uuid4().hex


def request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return f"req_{uuid.uuid4().hex[:12]}"


def runtime_from_request(request: Request) -> Runtime:
    return request.app.state.runtime


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    status_code: int,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_envelope(
            code=code,
            message=message,
            error_class=error_class,
            retryable=retryable,
            trace_id=trace_id_from_request(request),
        ),
    )
