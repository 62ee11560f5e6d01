from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], name: str, *, default: int, minimum: int = 0) -> int:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_float(env: Mapping[str, str], name: str, *, default: float) -> float:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    """Process configuration, read once at start and passed down explicitly."""

    openai_api_key: str = ""
    openai_base_url: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    vendor_agent_id: str = ""
    mock_llm_enabled: bool = False
    store_backend: str = "memory"
    postgres_dsn: str = ""
    poll_interval_ms: int = 1200
    poll_max_attempts: int = 250
    worker_idle_interval_ms: int = 5000
    worker_error_backoff_ms: int = 10000
    embedded_worker: bool = False
    object_storage_backend: str = "local"
    object_storage_root: str = "uploads"
    object_storage_bucket: str = "offers"
    object_storage_endpoint: str = ""
    object_storage_region: str = ""
    object_storage_access_key: str = ""
    object_storage_secret_key: str = ""
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ
        store_backend = env.get("BID_STORE_BACKEND", "memory").strip().lower() or "memory"
        if store_backend not in {"memory", "postgres"}:
            raise ValueError(f"unsupported bid store backend: {store_backend}")
        postgres_dsn = (env.get("POSTGRES_DSN", "") or env.get("DATABASE_URL", "")).strip()
        if store_backend == "postgres" and not postgres_dsn:
            raise ValueError("POSTGRES_DSN or DATABASE_URL must be set when BID_STORE_BACKEND=postgres")
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY", "").strip(),
            openai_base_url=env.get("OPENAI_BASE_URL", "").strip(),
            llm_model=env.get("LLM_MODEL", "").strip() or "gpt-4o-mini",
            llm_temperature=_env_float(env, "LLM_TEMPERATURE", default=0.1),
            vendor_agent_id=env.get("VENDOR_AGENT_ID", "").strip(),
            mock_llm_enabled=_as_bool(env.get("MOCK_LLM_ENABLED", "false")),
            store_backend=store_backend,
            postgres_dsn=postgres_dsn,
            poll_interval_ms=_env_int(env, "RUN_POLL_INTERVAL_MS", default=1200, minimum=1),
            poll_max_attempts=_env_int(env, "RUN_POLL_MAX_ATTEMPTS", default=250, minimum=1),
            worker_idle_interval_ms=_env_int(env, "WORKER_IDLE_INTERVAL_MS", default=5000, minimum=1),
            worker_error_backoff_ms=_env_int(env, "WORKER_ERROR_BACKOFF_MS", default=10000, minimum=1),
            embedded_worker=_as_bool(env.get("EMBEDDED_WORKER", "true" if store_backend == "memory" else "false")),
            object_storage_backend=env.get("OBJECT_STORAGE_BACKEND", "local").strip().lower() or "local",
            object_storage_root=env.get("OBJECT_STORAGE_ROOT", "uploads").strip() or "uploads",
            object_storage_bucket=env.get("OBJECT_STORAGE_BUCKET", "offers").strip() or "offers",
            object_storage_endpoint=env.get("OBJECT_STORAGE_ENDPOINT", "").strip(),
            object_storage_region=env.get("OBJECT_STORAGE_REGION", "").strip(),
            object_storage_access_key=env.get("OBJECT_STORAGE_ACCESS_KEY", "").strip(),
            object_storage_secret_key=env.get("OBJECT_STORAGE_SECRET_KEY", "").strip(),
            port=_env_int(env, "PORT", default=3000, minimum=1),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    @property
    def real_llm_available(self) -> bool:
        if self.mock_llm_enabled:
            return False
        return bool(self.openai_api_key)
