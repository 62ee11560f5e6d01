#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from offer_checker.db.postgres import PostgresTxRunner


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the bids and vendor_offers tables")
    parser.add_argument(
        "--dsn",
        default=os.getenv("POSTGRES_DSN", "") or os.getenv("DATABASE_URL", ""),
        help="PostgreSQL DSN",
    )
    parser.add_argument("--bids-table", default="bids")
    parser.add_argument("--offers-table", default="vendor_offers")
    args = parser.parse_args()

    dsn = str(args.dsn or "").strip()
    if not dsn:
        raise SystemExit("POSTGRES_DSN is required (pass --dsn or set env)")

    applied = PostgresTxRunner(dsn).apply_schema(bids_table=args.bids_table, offers_table=args.offers_table)
    print(json.dumps({"applied_tables": applied, "count": len(applied)}, ensure_ascii=True, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
