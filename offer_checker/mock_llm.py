"""
Deterministic stand-in for the reasoning service.

Used when MOCK_LLM_ENABLED=true or no OPENAI_API_KEY is configured. It answers
on the same client surface the invoker uses (chat completions, files, and
assistant threads/runs), so local runs exercise the whole pipeline offline.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import threading
from types import SimpleNamespace
from typing import Any

from offer_checker.schemas import VERDICT_CATEGORIES

# Runs report queued -> in_progress -> completed across successive retrieves.
_RUN_STATUS_SEQUENCE: tuple[str, ...] = ("queued", "in_progress", "completed")


def _deterministic_float(seed: str, min_val: float = 0.0, max_val: float = 1.0) -> float:
    h = hashlib.sha256(seed.encode()).hexdigest()
    val = int(h[:8], 16) / 0xFFFFFFFF
    return min_val + val * (max_val - min_val)


def mock_verdict(seed: str) -> dict[str, Any]:
    score = _deterministic_float(seed)
    if score < 0.6:
        category = VERDICT_CATEGORIES[0]
    elif score < 0.9:
        category = VERDICT_CATEGORIES[1]
    else:
        category = VERDICT_CATEGORIES[2]
    return {
        "verdict": category,
        "reasoning": f"[mock] deterministic assessment (score={score:.2f})",
        "suggestions": [] if category == "Fair" else ["Request an itemized price breakdown"],
    }


class _ChatCompletions:
    def create(self, *, model: str, messages: list[dict[str, str]], **_: Any) -> SimpleNamespace:
        prompt = "\n".join(str(m.get("content", "")) for m in messages)
        content = json.dumps(mock_verdict(prompt), ensure_ascii=True)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content=content))],
            usage=SimpleNamespace(
                prompt_tokens=len(prompt) // 4,
                completion_tokens=len(content) // 4,
                total_tokens=(len(prompt) + len(content)) // 4,
            ),
            model=model,
        )


class MockReasoningClient:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._files: dict[str, str] = {}
        self._threads: dict[str, list[str]] = {}
        self._runs: dict[str, dict[str, Any]] = {}

        self.chat = SimpleNamespace(completions=_ChatCompletions())
        self.files = SimpleNamespace(create=self._create_file)
        self.beta = SimpleNamespace(
            threads=SimpleNamespace(
                create=self._create_thread,
                messages=SimpleNamespace(create=self._create_message, list=self._list_messages),
                runs=SimpleNamespace(create=self._create_run, retrieve=self._retrieve_run),
            )
        )

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_mock_{next(self._ids)}"

    def _create_file(self, *, file: Any, purpose: str) -> SimpleNamespace:
        _, stream = file
        digest = hashlib.sha256(stream.read()).hexdigest()
        with self._lock:
            file_id = self._next_id("file")
            self._files[file_id] = digest
        return SimpleNamespace(id=file_id, purpose=purpose)

    def _create_thread(self) -> SimpleNamespace:
        with self._lock:
            thread_id = self._next_id("thread")
            self._threads[thread_id] = []
        return SimpleNamespace(id=thread_id)

    def _create_message(self, thread_id: str, *, role: str, content: str, attachments: list[dict] | None = None):
        seeds = [self._files.get(a.get("file_id", ""), "") for a in attachments or []]
        with self._lock:
            self._threads[thread_id].extend([content, *seeds])
        return SimpleNamespace(id=self._next_id("msg"), role=role)

    def _create_run(self, thread_id: str, *, assistant_id: str) -> SimpleNamespace:
        with self._lock:
            run_id = self._next_id("run")
            self._runs[run_id] = {"thread_id": thread_id, "assistant_id": assistant_id, "polls": 0}
        return SimpleNamespace(id=run_id, status="queued")

    def _retrieve_run(self, run_id: str, *, thread_id: str) -> SimpleNamespace:
        with self._lock:
            run = self._runs[run_id]
            idx = min(run["polls"], len(_RUN_STATUS_SEQUENCE) - 1)
            run["polls"] += 1
        return SimpleNamespace(id=run_id, thread_id=thread_id, status=_RUN_STATUS_SEQUENCE[idx])

    def _list_messages(self, thread_id: str, *, run_id: str | None = None, order: str = "desc"):
        with self._lock:
            seed = "|".join(self._threads.get(thread_id, []))
        text = json.dumps({**mock_verdict(seed), "items": []}, ensure_ascii=True)
        message = SimpleNamespace(
            role="assistant",
            run_id=run_id,
            content=[SimpleNamespace(type="text", text=SimpleNamespace(value=text, annotations=[]))],
        )
        return SimpleNamespace(data=[message])
