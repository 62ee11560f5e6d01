from __future__ import annotations

import json
import threading
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from offer_checker.db.postgres import PostgresTxRunner, validate_identifier
from offer_checker.errors import PersistenceFailure

BID_FIELDS: tuple[str, ...] = (
    "bid_id",
    "proposal_id",
    "vendor_name",
    "price_usd",
    "price_bol",
    "days",
    "notes",
    "payment_preference",
    "payment_terms",
    "document_uri",
    "created_at",
    "ai_analysis",
)


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def _created_sort_key(bid: dict[str, Any]) -> tuple[datetime, str]:
    raw = bid.get("created_at")
    if isinstance(raw, datetime):
        created = raw
    else:
        created = datetime.fromisoformat(str(raw))
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return created, str(bid.get("bid_id", ""))


def new_bid(payload: dict[str, Any]) -> dict[str, Any]:
    bid = {name: payload.get(name) for name in BID_FIELDS}
    bid["bid_id"] = str(payload.get("bid_id") or f"bid_{uuid.uuid4().hex[:12]}")
    bid["notes"] = payload.get("notes") or ""
    bid["created_at"] = payload.get("created_at") or _utcnow_iso()
    bid["ai_analysis"] = None
    return bid


class InMemoryBidsRepository:
    """Bid table kept in process memory; same contract as the Postgres one."""

    def __init__(self, bids: dict[str, dict[str, Any]] | None = None) -> None:
        self._lock = threading.RLock()
        self._bids = {} if bids is None else bids

    def reset(self) -> None:
        with self._lock:
            self._bids.clear()

    def create(self, *, bid: dict[str, Any]) -> dict[str, Any]:
        row = new_bid(bid)
        with self._lock:
            self._bids[row["bid_id"]] = row
        return dict(row)

    def get(self, *, bid_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._bids.get(bid_id)
            return None if row is None else dict(row)

    def claim_next(self) -> dict[str, Any] | None:
        with self._lock:
            pending = [row for row in self._bids.values() if row.get("ai_analysis") is None]
            if not pending:
                return None
            return dict(min(pending, key=_created_sort_key))

    def count_pending(self) -> int:
        with self._lock:
            return sum(1 for row in self._bids.values() if row.get("ai_analysis") is None)

    def count_unknown(self) -> int:
        with self._lock:
            return sum(
                1
                for row in self._bids.values()
                if isinstance(row.get("ai_analysis"), dict) and row["ai_analysis"].get("verdict") == "Unknown"
            )

    def save_analysis(self, *, bid_id: str, analysis: dict[str, Any]) -> bool:
        """Set ai_analysis once; returns False when another writer got there first."""
        with self._lock:
            row = self._bids.get(bid_id)
            if row is None:
                raise PersistenceFailure(f"bid not found: {bid_id}")
            if row.get("ai_analysis") is not None:
                return False
            row["ai_analysis"] = json.loads(json.dumps(analysis))
            return True


class PostgresBidsRepository:
    """Bids repository for the postgres backend.

    Claiming is a plain "oldest row with NULL ai_analysis" read with no row lock,
    so only one worker may consume the table at a time.
    """

    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "bids") -> None:
        self._tx_runner = tx_runner
        self._table_name = validate_identifier(table_name)
        self._columns = ", ".join(BID_FIELDS)

    @staticmethod
    def _row_to_bid(row: tuple[Any, ...]) -> dict[str, Any]:
        bid = dict(zip(BID_FIELDS, row))
        for name in ("price_usd", "price_bol"):
            if isinstance(bid[name], Decimal):
                bid[name] = float(bid[name])
        if isinstance(bid["created_at"], datetime):
            bid["created_at"] = bid["created_at"].isoformat()
        if isinstance(bid["ai_analysis"], str):
            bid["ai_analysis"] = json.loads(bid["ai_analysis"])
        bid["notes"] = bid["notes"] or ""
        return bid

    def create(self, *, bid: dict[str, Any]) -> dict[str, Any]:
        row = new_bid(bid)
        sql = f"""
            INSERT INTO {self._table_name} (
                bid_id, proposal_id, vendor_name, price_usd, price_bol, days, notes,
                payment_preference, payment_terms, document_uri, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        row["bid_id"],
                        row["proposal_id"],
                        row["vendor_name"],
                        row["price_usd"],
                        row["price_bol"],
                        row["days"],
                        row["notes"],
                        row["payment_preference"],
                        row["payment_terms"],
                        row["document_uri"],
                        row["created_at"],
                    ),
                )
            return row

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, bid_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT {self._columns}
            FROM {self._table_name}
            WHERE bid_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (bid_id,))
                row = cur.fetchone()
            return None if row is None else self._row_to_bid(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def claim_next(self) -> dict[str, Any] | None:
        sql = f"""
            SELECT {self._columns}
            FROM {self._table_name}
            WHERE ai_analysis IS NULL
            ORDER BY created_at ASC, bid_id ASC
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql)
                row = cur.fetchone()
            return None if row is None else self._row_to_bid(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def count_pending(self) -> int:
        sql = f"SELECT count(*) FROM {self._table_name} WHERE ai_analysis IS NULL"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql)
                row = cur.fetchone()
            return int(row[0]) if row else 0

        return self._tx_runner.run_in_tx(fn=_op)

    def count_unknown(self) -> int:
        sql = f"SELECT count(*) FROM {self._table_name} WHERE ai_analysis->>'verdict' = 'Unknown'"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql)
                row = cur.fetchone()
            return int(row[0]) if row else 0

        return self._tx_runner.run_in_tx(fn=_op)

    def save_analysis(self, *, bid_id: str, analysis: dict[str, Any]) -> bool:
        update_sql = f"""
            UPDATE {self._table_name}
            SET ai_analysis = %s::jsonb
            WHERE bid_id = %s AND ai_analysis IS NULL
            RETURNING bid_id
        """
        exists_sql = f"SELECT 1 FROM {self._table_name} WHERE bid_id = %s"

        def _op(conn: Any) -> bool:
            with conn.cursor() as cur:
                cur.execute(update_sql, (json.dumps(analysis, ensure_ascii=True, sort_keys=True), bid_id))
                if cur.fetchone() is not None:
                    return True
                cur.execute(exists_sql, (bid_id,))
                if cur.fetchone() is None:
                    raise PersistenceFailure(f"bid not found: {bid_id}")
            return False

        return self._tx_runner.run_in_tx(fn=_op)
