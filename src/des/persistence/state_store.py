"""JSON state store — the default key-value backend for ledger tables.

Holds the four primary tables (companies, credentials, contracts,
reviews), the escrow accounts and the id counters in one JSON document.
Derived indices (company → credentials, credential → contracts) are not
stored; they are rebuilt from the tables on load.

Writes go to a uniquely named temporary file beside the target that is
then renamed over it, so a crash mid-write leaves the previous state
intact and concurrent writers never share a temp file.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

TABLES = ("companies", "credentials", "contracts", "reviews", "escrow")
STATE_VERSION = 1


class StateStore:
    """File-backed snapshot of every ledger table."""

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> dict[str, Any]:
        """Return the stored document, or an empty one if none exists."""
        if not self._path.exists():
            return _empty_state()
        with self._path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        version = data.get("version")
        if version != STATE_VERSION:
            raise ValueError(
                f"Unsupported state version {version!r} in {self._path} "
                f"(expected {STATE_VERSION})"
            )
        for table in TABLES:
            data.setdefault(table, [])
        data.setdefault("sequences", {})
        return data

    def save(self, tables: dict[str, list[dict[str, Any]]], sequences: dict[str, int]) -> None:
        """Atomically replace the stored document. May raise OSError."""
        document: dict[str, Any] = {"version": STATE_VERSION, "sequences": dict(sequences)}
        for table in TABLES:
            document[table] = tables.get(table, [])

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=self._path.name + ".", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _empty_state() -> dict[str, Any]:
    state: dict[str, Any] = {"version": STATE_VERSION, "sequences": {}}
    for table in TABLES:
        state[table] = []
    return state
