"""Decode reasoning-service output into a Verdict.

Parsing fails open: anything that is not a JSON object matching ``Verdict``
becomes the ``Unknown`` sentinel so the bid still reaches its analyzed state.
Fallbacks are counted so a persistently broken integration stays visible.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from typing import Any

from pydantic import ValidationError

from offer_checker.schemas import UNKNOWN_VERDICT, Verdict

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n(?P<body>.*)\n```$", re.DOTALL)


def unknown_verdict() -> dict[str, Any]:
    return {**UNKNOWN_VERDICT, "suggestions": []}


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match is None:
        return text
    return match.group("body").strip()


class VerdictParser:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._parsed = 0
        self._fallbacks = 0

    @property
    def fallback_count(self) -> int:
        with self._lock:
            return self._fallbacks

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"parsed": self._parsed, "parse_fallbacks": self._fallbacks}

    def reset(self) -> None:
        with self._lock:
            self._parsed = 0
            self._fallbacks = 0

    def _fallback(self, reason: str, raw_text: Any) -> dict[str, Any]:
        with self._lock:
            self._fallbacks += 1
        preview = str(raw_text)[:200] if raw_text is not None else ""
        logger.warning("verdict_parse_fallback reason=%s preview=%r", reason, preview)
        return unknown_verdict()

    def parse(self, raw_text: str | None) -> dict[str, Any]:
        if not isinstance(raw_text, str) or not raw_text.strip():
            return self._fallback("empty", raw_text)
        try:
            decoded = json.loads(_strip_fence(raw_text.strip()))
        except (json.JSONDecodeError, ValueError, RecursionError):
            return self._fallback("invalid_json", raw_text)
        if not isinstance(decoded, dict):
            return self._fallback("not_an_object", raw_text)
        try:
            Verdict.model_validate(decoded)
        except ValidationError as exc:
            return self._fallback(f"schema:{exc.error_count()}_errors", raw_text)
        with self._lock:
            self._parsed += 1
        return decoded
