#!/usr/bin/env python3
"""One-time setup: create the assistant used for document-attached offer runs.

Usage:
    OPENAI_API_KEY=sk-... python scripts/create_assistant.py

Put the printed id into VENDOR_AGENT_ID.
"""

from __future__ import annotations

import argparse
import json
import os

import openai

ASSISTANT_NAME = "Vendor Offer Checker"

ASSISTANT_INSTRUCTIONS = """You are an AI agent that checks vendor offers for construction projects in Bolivia.
Compare vendor prices against reference DB values and flag if overpriced or suspicious.
Always return JSON with fields: verdict (Fair | Overpriced | Suspicious), reasoning, suggestions,
and items, a list of {item, vendor_price, reference_price, difference_percent}."""


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the vendor offer checking assistant.")
    parser.add_argument("--model", default=os.environ.get("ASSISTANT_MODEL", "gpt-4.1"))
    parser.add_argument("--name", default=ASSISTANT_NAME)
    args = parser.parse_args()

    api_key = os.environ.get("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise SystemExit("OPENAI_API_KEY is required")

    client = openai.OpenAI(api_key=api_key)
    assistant = client.beta.assistants.create(
        name=args.name,
        instructions=ASSISTANT_INSTRUCTIONS,
        model=args.model,
        tools=[{"type": "file_search"}],
    )
    print(json.dumps({"assistant_id": assistant.id, "model": args.model}, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
