#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from offer_checker.config import AppConfig
from offer_checker.main import create_app
from offer_checker.runtime import build_runtime


def main() -> int:
    try:
        config = AppConfig.from_env()
    except ValueError as exc:
        raise SystemExit(f"invalid configuration: {exc}")
    parser = argparse.ArgumentParser(description="Serve the vendor offer upload API.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=config.port)
    args = parser.parse_args()

    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app = create_app(build_runtime(config))
    logging.getLogger("offer_checker.api").info("Vendor offer API listening on port %s", args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
