"""invoke -> poll if needed -> parse -> persist, shared by the worker and the upload route."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from offer_checker.completion_poller import CompletionPoller
from offer_checker.errors import ApiError, PersistenceFailure
from offer_checker.llm_provider import AnalysisInvoker, RemoteJobHandle
from offer_checker.object_storage import ObjectStorageBackend
from offer_checker.verdict_parser import VerdictParser

logger = logging.getLogger(__name__)

StateCallback = Callable[[str], None]

# Failures a storage backend raises for an unreachable or refusing store.
STORAGE_ERRORS = (OSError, BotoCoreError, ClientError)


def _noop(_state: str) -> None:
    return None


@dataclass
class AnalysisJob:
    """One invocation cycle; lives only for the duration of a pipeline run."""

    source_id: str
    handle: RemoteJobHandle | None = None
    status: str = "created"
    raw_response: str | None = None
    verdict: dict[str, Any] | None = None


class AnalysisPipeline:
    def __init__(
        self,
        *,
        invoker: AnalysisInvoker,
        poller: CompletionPoller,
        parser: VerdictParser,
        bids: Any,
        offers: Any,
        storage: ObjectStorageBackend,
    ) -> None:
        self.invoker = invoker
        self.poller = poller
        self.parser = parser
        self.bids = bids
        self.offers = offers
        self.storage = storage

    def _run_document(self, job: AnalysisJob, *, file_bytes: bytes, filename: str, on_state: StateCallback) -> None:
        on_state("invoking")
        job.handle = self.invoker.submit_document(file_bytes=file_bytes, filename=filename)
        job.status = "polling"
        on_state("polling")
        job.raw_response = self.poller.await_completion(job.handle)

    def _parse(self, job: AnalysisJob, on_state: StateCallback) -> dict[str, Any]:
        on_state("parsing")
        job.verdict = self.parser.parse(job.raw_response)
        job.status = "parsed"
        return job.verdict

    def analyze_bid(self, bid: dict[str, Any], *, on_state: StateCallback = _noop) -> AnalysisJob:
        job = AnalysisJob(source_id=str(bid["bid_id"]))
        document_uri = bid.get("document_uri")
        if document_uri:
            file_bytes = self.storage.get_object(storage_uri=str(document_uri))
            filename = self.storage.filename_from_uri(str(document_uri))
            self._run_document(job, file_bytes=file_bytes, filename=filename, on_state=on_state)
        else:
            on_state("invoking")
            job.raw_response = self.invoker.invoke(bid)
        self._parse(job, on_state)
        return job

    def process_bid(self, bid: dict[str, Any], *, on_state: StateCallback = _noop) -> dict[str, Any]:
        job = self.analyze_bid(bid, on_state=on_state)
        on_state("persisting")
        written = self.bids.save_analysis(bid_id=job.source_id, analysis=job.verdict)
        if written:
            logger.info("bid_analysis_stored bid_id=%s verdict=%s", job.source_id, job.verdict.get("verdict"))
        else:
            logger.warning("bid_analysis_already_present bid_id=%s", job.source_id)
        job.status = "persisted"
        return job.verdict

    def process_upload(
        self,
        *,
        file_bytes: bytes,
        filename: str,
        content_type: str | None = None,
        on_state: StateCallback = _noop,
    ) -> dict[str, Any]:
        offer_id = f"offer_{uuid.uuid4().hex[:12]}"
        job = AnalysisJob(source_id=offer_id)
        try:
            file_url = self.storage.put_object(
                object_type="offers",
                object_id=offer_id,
                filename=filename,
                content_bytes=file_bytes,
                content_type=content_type,
            )
        except STORAGE_ERRORS as exc:
            raise ApiError(
                code="UPLOAD_STAGING_FAILED",
                message=f"upload could not be staged: {exc}",
                error_class="transient",
                retryable=True,
                http_status=500,
            ) from exc
        try:
            self._run_document(job, file_bytes=file_bytes, filename=filename, on_state=on_state)
            verdict = self._parse(job, on_state)
            on_state("persisting")
            record = self._store_offer(job, file_url=file_url, filename=filename)
        except Exception:
            self._discard_staged(file_url)
            raise
        logger.info("vendor_offer_stored offer_id=%s verdict=%s", offer_id, verdict.get("verdict"))
        return record

    def _store_offer(self, job: AnalysisJob, *, file_url: str, filename: str) -> dict[str, Any]:
        try:
            return self.offers.create(
                offer={
                    "offer_id": job.source_id,
                    "file_url": file_url,
                    "filename": filename,
                    "parsed_data": f"PDF handled by assistant run {job.handle.run_id}",
                    "ai_analysis": job.verdict,
                }
            )
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"vendor offer could not be stored: {type(exc).__name__}: {exc}") from exc

    def _discard_staged(self, file_url: str) -> None:
        """Remove a staged upload that no vendor offer record will reference."""
        try:
            self.storage.delete_object(storage_uri=file_url)
        except STORAGE_ERRORS as exc:
            logger.warning("staged_upload_cleanup_failed file_url=%s error=%s", file_url, exc)
            return
        logger.info("staged_upload_discarded file_url=%s", file_url)
