from __future__ import annotations

import logging
import threading
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from offer_checker.errors import ApiError
from offer_checker.llm_provider import get_provider_info
from offer_checker.routes import bids as bids_routes
from offer_checker.routes import offers as offers_routes
from offer_checker.routes._deps import error_response, request_id_from_request, trace_id_from_request
from offer_checker.runtime import Runtime, build_runtime
from offer_checker.schemas import success_envelope

logger = logging.getLogger(__name__)

WORKER_JOIN_TIMEOUT_S = 30.0


def create_app(runtime: Runtime | None = None) -> FastAPI:
    runtime = runtime if runtime is not None else build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # In-memory bids are only visible inside this process.
        worker = None
        worker_thread = None
        if runtime.config.embedded_worker:
            worker = runtime.create_worker()
            worker_thread = threading.Thread(target=worker.run_forever, name="bid-worker", daemon=True)
            worker_thread.start()
            logger.info("embedded_worker_started store_backend=%s", runtime.config.store_backend)
        app.state.worker = worker
        app.state.worker_thread = worker_thread
        try:
            yield
        finally:
            if worker is not None:
                worker.stop()
                worker_thread.join(timeout=WORKER_JOIN_TIMEOUT_S)
                if worker_thread.is_alive():
                    logger.warning("embedded_worker_still_running timeout_s=%s", WORKER_JOIN_TIMEOUT_S)

    app = FastAPI(title="Vendor Offer Checker API", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime
    app.state.worker = None
    app.state.worker_thread = None
    logger.info("api_configured provider=%s", get_provider_info(app.state.runtime.config))

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        incoming_trace_id = request.headers.get("x-trace-id", "").strip()
        request.state.trace_id = incoming_trace_id or uuid.uuid4().hex
        request.state.request_id = request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")
        response = await call_next(request)
        response.headers["x-trace-id"] = trace_id_from_request(request)
        response.headers["x-request-id"] = request_id_from_request(request)
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        logger.warning("api_error code=%s status=%s message=%s", exc.code, exc.http_status, exc.message)
        return error_response(
            request,
            code=exc.code,
            message=exc.message,
            error_class=exc.error_class,
            retryable=exc.retryable,
            status_code=exc.http_status,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            request,
            code="REQ_VALIDATION_FAILED",
            message="invalid payload",
            error_class="validation",
            retryable=False,
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                request,
                code="REQ_NOT_FOUND",
                message="resource not found",
                error_class="validation",
                retryable=False,
                status_code=404,
            )
        return error_response(
            request,
            code="REQ_HTTP_ERROR",
            message=str(exc.detail),
            error_class="validation",
            retryable=False,
            status_code=exc.status_code,
        )

    @app.get("/healthz")
    def healthz(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok"}, trace_id_from_request(request))

    @app.get("/api/v1/health")
    def health_api(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok"}, trace_id_from_request(request))

    app.include_router(offers_routes.router)
    app.include_router(bids_routes.router)
    return app
