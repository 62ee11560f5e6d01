from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from offer_checker.errors import JobTerminalFailure, PollTimeout

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self not in {RunStatus.QUEUED, RunStatus.RUNNING}


FAILURE_STATUSES = frozenset({RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED})

# Remote run states outside the core set. Anything unrecognized counts as failed
# so an unexpected state can never keep the poller spinning.
_REMOTE_ALIASES: dict[str, RunStatus] = {
    "in_progress": RunStatus.RUNNING,
    "cancelling": RunStatus.RUNNING,
    "incomplete": RunStatus.FAILED,
    "requires_action": RunStatus.FAILED,
}


def normalize_status(raw: str) -> RunStatus:
    value = str(raw or "").strip().lower()
    try:
        return RunStatus(value)
    except ValueError:
        return _REMOTE_ALIASES.get(value, RunStatus.FAILED)


class CompletionPoller:
    """Poll a remote run until it reaches a terminal status.

    ``fetch_status`` and ``fetch_result`` take the job handle. Each non-terminal
    observation is followed by one ``sleep(poll_interval_ms / 1000)``; after
    ``max_attempts`` status queries without a terminal state, PollTimeout is raised.
    """

    def __init__(
        self,
        *,
        fetch_status: Callable[[Any], str],
        fetch_result: Callable[[Any], str],
        poll_interval_ms: int = 1200,
        max_attempts: int = 250,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.fetch_status = fetch_status
        self.fetch_result = fetch_result
        self.poll_interval_ms = max(1, int(poll_interval_ms))
        self.max_attempts = max(1, int(max_attempts))
        self._sleep = sleep

    def await_completion(self, handle: Any) -> str:
        attempts = 0
        while True:
            raw = self.fetch_status(handle)
            attempts += 1
            status = normalize_status(raw)
            if status is RunStatus.COMPLETED:
                logger.info("remote_run_completed attempts=%s", attempts)
                return self.fetch_result(handle)
            if status in FAILURE_STATUSES:
                logger.warning("remote_run_terminal_failure status=%s remote_status=%s", status.value, raw)
                raise JobTerminalFailure(status.value, detail="" if raw == status.value else str(raw))
            if attempts >= self.max_attempts:
                raise PollTimeout(attempts=attempts, last_status=status.value)
            self._sleep(self.poll_interval_ms / 1000.0)
