from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from offer_checker.completion_poller import CompletionPoller
from offer_checker.config import AppConfig
from offer_checker.db.postgres import PostgresTxRunner
from offer_checker.llm_provider import AnalysisInvoker, create_invoker
from offer_checker.object_storage import ObjectStorageBackend, create_object_storage
from offer_checker.pipeline import AnalysisPipeline
from offer_checker.repositories import (
    InMemoryBidsRepository,
    InMemoryVendorOffersRepository,
    PostgresBidsRepository,
    PostgresVendorOffersRepository,
)
from offer_checker.verdict_parser import VerdictParser
from offer_checker.worker_runtime import WorkerRuntime


@dataclass
class Runtime:
    config: AppConfig
    bids: Any
    offers: Any
    storage: ObjectStorageBackend
    invoker: AnalysisInvoker
    poller: CompletionPoller
    parser: VerdictParser
    pipeline: AnalysisPipeline

    def create_worker(self, *, sleep: Callable[[float], Any] | None = None) -> WorkerRuntime:
        return WorkerRuntime(
            bids=self.bids,
            pipeline=self.pipeline,
            idle_interval_ms=self.config.worker_idle_interval_ms,
            error_backoff_ms=self.config.worker_error_backoff_ms,
            sleep=sleep,
        )


def build_runtime(
    config: AppConfig | None = None,
    *,
    client: Any | None = None,
    bids: Any | None = None,
    offers: Any | None = None,
    storage: ObjectStorageBackend | None = None,
    poll_sleep: Callable[[float], Any] | None = None,
) -> Runtime:
    """Wire every collaborator once; callers may substitute any of them."""
    cfg = config if config is not None else AppConfig.from_env()

    if bids is None or offers is None:
        if cfg.store_backend == "postgres":
            tx_runner = PostgresTxRunner(cfg.postgres_dsn)
            bids = bids if bids is not None else PostgresBidsRepository(tx_runner=tx_runner)
            offers = offers if offers is not None else PostgresVendorOffersRepository(tx_runner=tx_runner)
        else:
            bids = bids if bids is not None else InMemoryBidsRepository()
            offers = offers if offers is not None else InMemoryVendorOffersRepository()

    storage = storage if storage is not None else create_object_storage(cfg)
    invoker = create_invoker(cfg, client=client)
    poller_kwargs: dict[str, Any] = {}
    if poll_sleep is not None:
        poller_kwargs["sleep"] = poll_sleep
    poller = CompletionPoller(
        fetch_status=invoker.run_status,
        fetch_result=invoker.fetch_reply,
        poll_interval_ms=cfg.poll_interval_ms,
        max_attempts=cfg.poll_max_attempts,
        **poller_kwargs,
    )
    parser = VerdictParser()
    pipeline = AnalysisPipeline(
        invoker=invoker,
        poller=poller,
        parser=parser,
        bids=bids,
        offers=offers,
        storage=storage,
    )
    return Runtime(
        config=cfg,
        bids=bids,
        offers=offers,
        storage=storage,
        invoker=invoker,
        poller=poller,
        parser=parser,
        pipeline=pipeline,
    )
