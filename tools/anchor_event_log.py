#!/usr/bin/env python3
"""Anchor the DES event log head digest on Ethereum Sepolia.

Appends a line to docs/ANCHORS.md for every anchor sent, so the list of
on-chain commitments travels with the repository.

Usage:
    python3 tools/anchor_event_log.py
    python3 tools/anchor_event_log.py path/to/data

Requires:
    DES_RPC_URL and DES_PRIVATE_KEY in a .env file at the project root.
"""

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from dotenv import load_dotenv
from des.crypto.anchor import anchor_event_log
from des.persistence.event_log import EventLog

load_dotenv(ROOT / ".env")

RPC_URL = os.getenv("DES_RPC_URL")
PRIVATE_KEY = os.getenv("DES_PRIVATE_KEY")

if not RPC_URL or not PRIVATE_KEY:
    print("ERROR: Missing DES_RPC_URL and/or DES_PRIVATE_KEY in .env")
    sys.exit(1)

data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(os.getenv("DES_DATA_DIR", ROOT / "data"))
events_path = data_dir / "events.jsonl"
if not events_path.exists():
    print(f"ERROR: Event log not found: {events_path}")
    sys.exit(1)

log = EventLog(storage_path=events_path)
print(f"  Events:   {log.count}")
print(f"  Digest:   {log.head_digest()}")
print("Anchoring to Ethereum Sepolia (Chain ID: 11155111) ...")

record = anchor_event_log(log, RPC_URL, PRIVATE_KEY)

anchors_file = ROOT / "docs" / "ANCHORS.md"
anchors_file.parent.mkdir(parents=True, exist_ok=True)
with anchors_file.open("a", encoding="utf-8") as f:
    f.write(
        f"- `{record.sha256_hash}` through {record.last_event_id} "
        f"({record.event_count} events) → [tx {record.tx_hash[:10]}...]({record.explorer_url}) "
        f"| Block {record.block_number} | {record.timestamp_utc}\n"
    )

print(f"  Tx:       {record.tx_hash}")
print(f"  Block:    {record.block_number}")
print(f"  Explorer: {record.explorer_url}")
