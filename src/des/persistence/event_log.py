"""Append-only event log — the audit trail of every employment action.

Every successful mutation produces exactly one event (minting produces
the CREDENTIAL_LOCKED / CREDENTIAL_ISSUED pair). Events are immutable
once written. The log serves as:
1. The feed for external indexers and observers.
2. The audit trail for third-party verification (see des.crypto.anchor).
3. A JSONL file that can be reloaded with integrity checks.

Events are appended only after the state change they describe has been
applied, so an observer never sees an event for a rejected operation.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """Classification of lifecycle events."""
    COMPANY_REGISTERED = "company_registered"
    COMPANY_DEACTIVATED = "company_deactivated"
    CREDENTIAL_LOCKED = "credential_locked"
    CREDENTIAL_ISSUED = "credential_issued"
    CONTRACT_CREATED = "contract_created"
    CONTRACT_EXECUTED = "contract_executed"
    SALARY_DEPOSITED = "salary_deposited"
    SALARY_RELEASED = "salary_released"
    DISPUTE_RAISED = "dispute_raised"
    DISPUTE_RESOLVED = "dispute_resolved"
    CONTRACT_TERMINATED = "contract_terminated"
    CONTRACT_COMPLETED = "contract_completed"
    REVIEW_SUBMITTED = "review_submitted"


EventObserver = Callable[["EventRecord"], None]


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable lifecycle event.

    payload carries ids as ints and amounts as strings so the canonical
    JSON (and therefore event_hash) is stable across reloads.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional JSONL persistence and observers.

    Observers are called after the event is stored. An observer that
    raises is logged and skipped; the event stays committed.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._observers: list[EventObserver] = []

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def subscribe(self, observer: EventObserver) -> None:
        self._observers.append(observer)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError if event_id is a duplicate (replay protection).
        """
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        if self._storage_path:
            self._append_to_file(event)
        self._events.append(event)
        self._event_ids.add(event.event_id)

        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer %r failed on event %s", observer, event.event_id,
                )

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for_contract(self, contract_id: int) -> list[EventRecord]:
        return [e for e in self._events if e.payload.get("contract_id") == contract_id]

    def head_digest(self) -> str:
        """SHA-256 over the ordered event hashes — a fingerprint of the whole log."""
        h = hashlib.sha256()
        for event in self._events:
            h.update(event.event_hash.encode("utf-8"))
        return h.hexdigest()

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
