from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for PostgreSQL backends; install psycopg[binary]") from exc
    return psycopg


def validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def schema_statements(*, bids_table: str = "bids", offers_table: str = "vendor_offers") -> list[str]:
    bids = validate_identifier(bids_table)
    offers = validate_identifier(offers_table)
    return [
        f"""
        CREATE TABLE IF NOT EXISTS {bids} (
            bid_id TEXT PRIMARY KEY,
            proposal_id TEXT NOT NULL,
            vendor_name TEXT NOT NULL,
            price_usd NUMERIC,
            price_bol NUMERIC,
            days INTEGER,
            notes TEXT,
            payment_preference TEXT,
            payment_terms TEXT,
            document_uri TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            ai_analysis JSONB
        )
        """,
        f"""
        CREATE INDEX IF NOT EXISTS {bids}_pending_idx
        ON {bids} (created_at, bid_id) WHERE ai_analysis IS NULL
        """,
        f"""
        CREATE TABLE IF NOT EXISTS {offers} (
            offer_id TEXT PRIMARY KEY,
            file_url TEXT NOT NULL,
            filename TEXT,
            parsed_data TEXT,
            ai_analysis JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """,
    ]


class PostgresTxRunner:
    """Run callback logic in one PostgreSQL transaction."""

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()

    def run_in_tx(self, *, fn: Callable[[Any], Any]) -> Any:
        psycopg = _import_psycopg()
        with psycopg.connect(self._dsn) as conn:
            result = fn(conn)
            conn.commit()
            return result

    def apply_schema(self, *, bids_table: str = "bids", offers_table: str = "vendor_offers") -> list[str]:
        statements = schema_statements(bids_table=bids_table, offers_table=offers_table)

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                for sql in statements:
                    cur.execute(sql)

        self.run_in_tx(fn=_op)
        return [bids_table, offers_table]
