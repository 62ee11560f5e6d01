"""
Reasoning-service access for bid analysis.

Two call shapes:
  - direct: one chat completion in JSON mode, text comes back immediately
  - document: upload a file, start an assistant run on a thread, and hand back
    a RemoteJobHandle; the reply is fetched once CompletionPoller sees the run
    finish

No retries happen here. Every transport or service error, and every empty
reply, surfaces as InvocationFailure so the caller decides what to do next.
"""

from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import openai

from offer_checker.config import AppConfig
from offer_checker.errors import InvocationFailure

logger = logging.getLogger(__name__)

_BID_PROMPT_TEMPLATE = """Analyze this vendor bid in Bolivia construction context:

Vendor: {vendor_name}
Proposal: {proposal_id}
Price (USD): {price_usd}
Price (BOB): {price_bol}
Days: {days}
Payment preference: {payment_preference}
Payment terms: {payment_terms}
Notes: {notes}

Return ONLY valid JSON with this shape:
{{
  "verdict": "Fair | Overpriced | Suspicious",
  "reasoning": "short explanation",
  "suggestions": ["...", "..."]
}}"""

DOCUMENT_PROMPT = """Analyze this vendor offer and compare with DB reference prices.

Return ONLY valid JSON with this shape:
{
  "verdict": "Fair | Overpriced | Suspicious",
  "reasoning": "short explanation",
  "suggestions": ["...", "..."],
  "items": [
    {"item": "...", "vendor_price": 0, "reference_price": 0, "difference_percent": 0}
  ]
}"""


def _fmt(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    return str(value)


def build_bid_prompt(bid: dict[str, Any]) -> str:
    return _BID_PROMPT_TEMPLATE.format(
        vendor_name=_fmt(bid.get("vendor_name")),
        proposal_id=_fmt(bid.get("proposal_id")),
        price_usd=_fmt(bid.get("price_usd")),
        price_bol=_fmt(bid.get("price_bol")),
        days=_fmt(bid.get("days")),
        payment_preference=_fmt(bid.get("payment_preference")),
        payment_terms=_fmt(bid.get("payment_terms")),
        notes=_fmt(bid.get("notes")),
    )


@dataclass
class RemoteJobHandle:
    thread_id: str
    run_id: str
    file_id: str = ""


@dataclass
class InvocationUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model: str = ""
    latency_ms: float = 0.0


@dataclass
class AnalysisInvoker:
    client: Any
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    assistant_id: str = ""
    max_tokens: int = 1024
    last_usage: InvocationUsage | None = field(default=None, init=False)

    def invoke(self, bid: dict[str, Any]) -> str:
        """Direct flow: one chat completion, returns the raw reply text."""
        messages = [{"role": "user", "content": build_bid_prompt(bid)}]
        t0 = time.monotonic()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except (openai.OpenAIError, OSError) as exc:
            raise InvocationFailure(f"chat completion failed: {type(exc).__name__}: {exc}") from exc
        elapsed_ms = (time.monotonic() - t0) * 1000

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        usage_data = getattr(response, "usage", None)
        self.last_usage = InvocationUsage(
            prompt_tokens=getattr(usage_data, "prompt_tokens", 0) if usage_data else 0,
            completion_tokens=getattr(usage_data, "completion_tokens", 0) if usage_data else 0,
            total_tokens=getattr(usage_data, "total_tokens", 0) if usage_data else 0,
            model=self.model,
            latency_ms=round(elapsed_ms, 1),
        )
        if not content or not content.strip():
            raise InvocationFailure("chat completion returned an empty response")
        logger.info(
            "bid_analysis_invoked bid_id=%s model=%s total_tokens=%s latency_ms=%s",
            bid.get("bid_id"),
            self.model,
            self.last_usage.total_tokens,
            self.last_usage.latency_ms,
        )
        return content

    def submit_document(
        self,
        *,
        file_bytes: bytes,
        filename: str,
        instructions: str = DOCUMENT_PROMPT,
    ) -> RemoteJobHandle:
        """Document flow: attach the file to a new thread and start an assistant run."""
        if not self.assistant_id:
            raise InvocationFailure(
                "VENDOR_AGENT_ID is not configured",
                code="ASSISTANT_NOT_CONFIGURED",
                http_status=503,
            )
        if not file_bytes:
            raise InvocationFailure("uploaded document is empty", code="UPLOAD_FILE_EMPTY", http_status=400)
        try:
            uploaded = self.client.files.create(
                file=(filename or "offer.pdf", io.BytesIO(file_bytes)),
                purpose="assistants",
            )
            thread = self.client.beta.threads.create()
            self.client.beta.threads.messages.create(
                thread.id,
                role="user",
                content=instructions,
                attachments=[{"file_id": uploaded.id, "tools": [{"type": "file_search"}]}],
            )
            run = self.client.beta.threads.runs.create(thread.id, assistant_id=self.assistant_id)
        except (openai.OpenAIError, OSError) as exc:
            raise InvocationFailure(f"assistant run could not start: {type(exc).__name__}: {exc}") from exc
        logger.info("document_run_started thread_id=%s run_id=%s file_id=%s", thread.id, run.id, uploaded.id)
        return RemoteJobHandle(thread_id=thread.id, run_id=run.id, file_id=uploaded.id)

    def run_status(self, handle: RemoteJobHandle) -> str:
        try:
            run = self.client.beta.threads.runs.retrieve(handle.run_id, thread_id=handle.thread_id)
        except (openai.OpenAIError, OSError) as exc:
            raise InvocationFailure(f"run status query failed: {type(exc).__name__}: {exc}") from exc
        return str(getattr(run, "status", "") or "")

    def fetch_reply(self, handle: RemoteJobHandle) -> str:
        try:
            page = self.client.beta.threads.messages.list(handle.thread_id, run_id=handle.run_id, order="desc")
        except (openai.OpenAIError, OSError) as exc:
            raise InvocationFailure(f"run reply fetch failed: {type(exc).__name__}: {exc}") from exc
        for message in getattr(page, "data", None) or []:
            if getattr(message, "role", "") != "assistant":
                continue
            parts = [
                part.text.value
                for part in getattr(message, "content", None) or []
                if getattr(part, "type", "") == "text" and getattr(part, "text", None) is not None
            ]
            text = "\n".join(p for p in parts if p)
            if text.strip():
                return text
        raise InvocationFailure("assistant run completed without a reply")


def create_reasoning_client(config: AppConfig) -> Any:
    if not config.real_llm_available:
        from offer_checker.mock_llm import MockReasoningClient

        logger.warning("OPENAI_API_KEY missing or MOCK_LLM_ENABLED set; using deterministic mock reasoning client")
        return MockReasoningClient()

    kwargs: dict[str, Any] = {"api_key": config.openai_api_key}
    if config.openai_base_url:
        kwargs["base_url"] = config.openai_base_url
    return openai.OpenAI(**kwargs)


def create_invoker(config: AppConfig, *, client: Any | None = None) -> AnalysisInvoker:
    return AnalysisInvoker(
        client=client if client is not None else create_reasoning_client(config),
        model=config.llm_model,
        temperature=config.llm_temperature,
        assistant_id=config.vendor_agent_id,
    )


def get_provider_info(config: AppConfig) -> dict[str, Any]:
    """Return current provider configuration (safe for logging, no secrets)."""
    return {
        "model": config.llm_model,
        "base_url": config.openai_base_url or "(default)",
        "has_api_key": bool(config.openai_api_key),
        "assistant_configured": bool(config.vendor_agent_id),
        "real_llm_available": config.real_llm_available,
        "temperature": config.llm_temperature,
    }
