"""Local Session Mirror — best-effort copy of finished sessions the database could not take.

Invariants:
    - Written only when the durable store is unreachable at termination
    - Read only while the durable store is unreachable; a store answer always wins
    - Never written back into the durable store (not a second writer)
    - File persistence is optional; a failing file write is logged and ignored

Design Decisions:
    - In-memory dict keyed by session_id, optionally appended to a JSON-lines file
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalSessionMirror:
    """Process-local fallback for finished session records."""

    def __init__(self, path: str | None = None):
        self._records: dict[str, dict] = {}
        self._path = Path(path) if path else None

    def record(self, session: dict) -> None:
        self._records[session["session_id"]] = session
        if self._path is None:
            return
        try:
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(session, default=str, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"Local mirror write failed: {e}")

    def get(self, session_id: str) -> dict | None:
        return self._records.get(session_id)

    def list_all(self) -> list[dict]:
        return sorted(
            self._records.values(),
            key=lambda s: str(s.get("start_time") or ""),
            reverse=True,
        )

    def __len__(self) -> int:
        return len(self._records)
