#!/usr/bin/env python3
"""DES invariant checks against the policy file and the persisted ledger.

Usage:
    python3 tools/check_invariants.py
    python3 tools/check_invariants.py path/to/data
"""

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from des.persistence.event_log import EventLog
from des.persistence.state_store import StateStore
from des.policy import POLICY_FILENAME, EmploymentPolicy
from des.service import EmploymentService

CONFIG_DIR = ROOT / "config"


def check_policy(errors: list[str]) -> EmploymentPolicy:
    path = CONFIG_DIR / POLICY_FILENAME
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    for section in ("reviews", "contracts"):
        if section not in raw:
            errors.append(f"{POLICY_FILENAME} missing section: {section}")
    policy = EmploymentPolicy.from_dict(raw)
    if policy.rating_min < 0:
        errors.append("rating_min must be >= 0")
    return policy


def check(data_dir: Path = ROOT / "data") -> int:
    errors: list[str] = []
    policy = check_policy(errors)

    state_path = data_dir / "state.json"
    if state_path.exists():
        service = EmploymentService(
            policy=policy,
            event_log=EventLog(storage_path=data_dir / "events.jsonl"),
            state_store=StateStore(storage_path=state_path),
        )
        errors.extend(service.check_invariants())

    if errors:
        print("Invariant check failed:")
        for error in errors:
            print(f"- {error}")
        return 1

    print("Invariant checks passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check(Path(sys.argv[1]) if len(sys.argv) > 1 else ROOT / "data"))
