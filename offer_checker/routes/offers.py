from __future__ import annotations

import logging

from fastapi import APIRouter, File, Request, UploadFile

from offer_checker.errors import ApiError
from offer_checker.routes._deps import runtime_from_request, trace_id_from_request
from offer_checker.schemas import success_envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["offers"])


# Sync handler: the inline run poll blocks, so it runs on the threadpool
# alongside other uploads and the worker.
@router.post("/upload-offer")
@router.post("/api/v1/offers/upload")
def upload_offer(request: Request, file: UploadFile | None = File(default=None)):
    if file is None or not file.filename:
        raise ApiError(
            code="UPLOAD_FILE_MISSING",
            message="a file must be attached in the 'file' form field",
            error_class="validation",
            retryable=False,
            http_status=400,
        )
    runtime = runtime_from_request(request)
    if not runtime.config.vendor_agent_id:
        raise ApiError(
            code="ASSISTANT_NOT_CONFIGURED",
            message="VENDOR_AGENT_ID is not configured",
            error_class="configuration",
            retryable=False,
            http_status=503,
        )
    file_bytes = file.file.read()
    if not file_bytes:
        raise ApiError(
            code="UPLOAD_FILE_EMPTY",
            message="uploaded file is empty",
            error_class="validation",
            retryable=False,
            http_status=400,
        )

    record = runtime.pipeline.process_upload(
        file_bytes=file_bytes,
        filename=file.filename,
        content_type=file.content_type,
    )
    body = success_envelope(record, trace_id_from_request(request))
    body["analysis"] = record["ai_analysis"]
    return body
