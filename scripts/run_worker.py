#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from offer_checker.config import AppConfig
from offer_checker.runtime import build_runtime

logger = logging.getLogger("offer_checker.worker")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the bid analysis worker loop.")
    parser.add_argument(
        "--iterations",
        type=int,
        default=0,
        help="Stop after N cycles (0 means run until SIGINT/SIGTERM).",
    )
    args = parser.parse_args()

    try:
        config = AppConfig.from_env()
    except ValueError as exc:
        raise SystemExit(f"invalid configuration: {exc}")
    if config.store_backend == "memory":
        raise SystemExit(
            "run_worker.py needs BID_STORE_BACKEND=postgres; with the memory backend "
            "the API process runs the worker itself (EMBEDDED_WORKER)"
        )
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    runtime = build_runtime(config)
    worker = runtime.create_worker()

    def _handle_signal(signum, _frame):
        logger.info("received signal %s, finishing current cycle", signum)
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    stats = worker.run_forever(stop_after_iterations=args.iterations if args.iterations > 0 else None)
    print(json.dumps({"success": True, "stats": stats}, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
