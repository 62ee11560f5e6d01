from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from offer_checker.pipeline import AnalysisPipeline

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    CLAIMED = "claimed"
    INVOKING = "invoking"
    POLLING = "polling"
    PARSING = "parsing"
    PERSISTING = "persisting"
    ERROR_BACKOFF = "error_backoff"


@dataclass
class WorkerRunStats:
    cycles: int = 0
    idle: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    parse_fallbacks: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "cycles": self.cycles,
            "idle": self.idle,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "parse_fallbacks": self.parse_fallbacks,
        }


class WorkerRuntime:
    """Single-consumer loop that analyzes bids whose ai_analysis is still NULL.

    Claiming is not exclusive: run exactly one worker per bid table.
    """

    def __init__(
        self,
        *,
        bids: Any,
        pipeline: AnalysisPipeline,
        idle_interval_ms: int = 5000,
        error_backoff_ms: int = 10000,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self.bids = bids
        self.pipeline = pipeline
        self.idle_interval_ms = max(1, int(idle_interval_ms))
        self.error_backoff_ms = max(1, int(error_backoff_ms))
        self.stop_event = threading.Event()
        self.state = WorkerState.IDLE
        self.stats = WorkerRunStats()
        self.last_error: str | None = None
        self._sleep = sleep

    def _set_state(self, state: WorkerState | str) -> None:
        self.state = WorkerState(state)

    def _wait(self, interval_ms: int) -> None:
        seconds = interval_ms / 1000.0
        if self._sleep is not None:
            self._sleep(seconds)
            return
        self.stop_event.wait(seconds)

    def stop(self) -> None:
        self.stop_event.set()

    def run_once(self) -> str:
        """Run one claim/analyze/persist cycle. Returns "idle", "processed" or "error"."""
        self.stats.cycles += 1
        bid_id = None
        try:
            self._set_state(WorkerState.IDLE)
            bid = self.bids.claim_next()
            if bid is None:
                self.stats.idle += 1
                return "idle"
            bid_id = bid.get("bid_id")
            self._set_state(WorkerState.CLAIMED)
            logger.info("bid_claimed bid_id=%s proposal_id=%s", bid_id, bid.get("proposal_id"))
            self.stats.processed += 1
            verdict = self.pipeline.process_bid(bid, on_state=self._set_state)
        except Exception as exc:
            self._set_state(WorkerState.ERROR_BACKOFF)
            self.stats.failed += 1
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception("worker_cycle_failed bid_id=%s error=%s", bid_id, self.last_error)
            return "error"
        self.stats.succeeded += 1
        if verdict.get("verdict") == "Unknown":
            self.stats.parse_fallbacks += 1
        self._set_state(WorkerState.IDLE)
        return "processed"

    def run_forever(self, *, stop_after_iterations: int | None = None) -> dict[str, int]:
        logger.info(
            "worker_started idle_interval_ms=%s error_backoff_ms=%s (single consumer per bid table)",
            self.idle_interval_ms,
            self.error_backoff_ms,
        )
        iterations = 0
        while not self.stop_event.is_set():
            outcome = self.run_once()
            iterations += 1
            if stop_after_iterations is not None and iterations >= max(1, stop_after_iterations):
                break
            if outcome == "idle":
                self._wait(self.idle_interval_ms)
            elif outcome == "error":
                logger.warning("worker_backoff ms=%s", self.error_backoff_ms)
                self._wait(self.error_backoff_ms)
        self._set_state(WorkerState.IDLE)
        logger.info("worker_stopped stats=%s", self.stats.as_dict())
        return self.stats.as_dict()
