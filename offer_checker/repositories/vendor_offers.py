from __future__ import annotations

import json
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from offer_checker.db.postgres import PostgresTxRunner, validate_identifier


def _new_offer(offer: dict[str, Any]) -> dict[str, Any]:
    return {
        "offer_id": str(offer.get("offer_id") or f"offer_{uuid.uuid4().hex[:12]}"),
        "file_url": str(offer["file_url"]),
        "filename": offer.get("filename"),
        "parsed_data": offer.get("parsed_data"),
        "ai_analysis": offer["ai_analysis"],
        "created_at": offer.get("created_at") or datetime.now(UTC).isoformat(),
    }


class InMemoryVendorOffersRepository:
    def __init__(self, offers: dict[str, dict[str, Any]] | None = None) -> None:
        self._lock = threading.Lock()
        self._offers = {} if offers is None else offers

    def reset(self) -> None:
        with self._lock:
            self._offers.clear()

    def create(self, *, offer: dict[str, Any]) -> dict[str, Any]:
        row = _new_offer(offer)
        with self._lock:
            self._offers[row["offer_id"]] = row
        return dict(row)

    def get(self, *, offer_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._offers.get(offer_id)
            return None if row is None else dict(row)

    def count(self) -> int:
        with self._lock:
            return len(self._offers)


class PostgresVendorOffersRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "vendor_offers") -> None:
        self._tx_runner = tx_runner
        self._table_name = validate_identifier(table_name)

    def create(self, *, offer: dict[str, Any]) -> dict[str, Any]:
        row = _new_offer(offer)
        sql = f"""
            INSERT INTO {self._table_name} (
                offer_id, file_url, filename, parsed_data, ai_analysis, created_at
            ) VALUES (%s, %s, %s, %s, %s::jsonb, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        row["offer_id"],
                        row["file_url"],
                        row["filename"],
                        row["parsed_data"],
                        json.dumps(row["ai_analysis"], ensure_ascii=True, sort_keys=True),
                        row["created_at"],
                    ),
                )
            return row

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, offer_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT offer_id, file_url, filename, parsed_data, ai_analysis, created_at
            FROM {self._table_name}
            WHERE offer_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (offer_id,))
                row = cur.fetchone()
            if row is None:
                return None
            created_at = row[5].isoformat() if isinstance(row[5], datetime) else row[5]
            return {
                "offer_id": row[0],
                "file_url": row[1],
                "filename": row[2],
                "parsed_data": row[3],
                "ai_analysis": row[4] if isinstance(row[4], dict) else json.loads(row[4]),
                "created_at": created_at,
            }

        return self._tx_runner.run_in_tx(fn=_op)

    def count(self) -> int:
        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(f"SELECT count(*) FROM {self._table_name}")
                row = cur.fetchone()
            return int(row[0]) if row else 0

        return self._tx_runner.run_in_tx(fn=_op)
