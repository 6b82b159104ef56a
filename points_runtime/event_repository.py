"""
Event Repository - sqlite3-backed ledger event store.

Concurrency control (retry on IntegrityError),
idempotency (event_uuid dedup),
stream metadata (last_state_hash tracking).

Stores events as JSON. Reconstructs proper event class instances
on load (strict type dispatch, never generic BaseEvent).
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from points_kernel.events import EVENT_CLASS_MAP, BaseEvent

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Max retries for concurrent sequence conflicts
_MAX_RETRIES: int = 3

_INSERT_SQL = """
    INSERT INTO events
        (ledger_id, sequence, event_type, timestamp, event_uuid, payload_json)
    VALUES (?, ?, ?, ?, ?, ?)
"""


def reconstruct_event(event_dict: dict) -> BaseEvent:
    """
    Reconstruct a typed event instance from a stored dict.

    Dispatches on event_type to the correct subclass.
    Raises ValueError for unknown types; never silently degrades.
    """
    etype = event_dict["event_type"]
    cls = EVENT_CLASS_MAP.get(etype)
    if cls is None:
        raise ValueError(
            f"Unknown event_type {etype!r} - cannot reconstruct. "
            f"Known types: {sorted(EVENT_CLASS_MAP)}"
        )
    return cls(
        timestamp=event_dict.get("timestamp", ""),
        sequence=event_dict.get("sequence", 0),
        event_uuid=event_dict.get("event_uuid", ""),
        payload=event_dict.get("payload", {}),
    )


class EventRepository:
    """
    Append-only event store backed by sqlite3.

    Thread-safety: single writer per ledger assumed; retry provides
    resilience against sequence conflicts. All writes are
    transaction-wrapped.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema_sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        self._conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append_event(
        self,
        ledger_id: str,
        event: BaseEvent,
        event_uuid: str = "",
    ) -> int:
        """
        Append a single event. Assigns next sequence atomically.
        Returns the assigned sequence number.

        Idempotency: if event_uuid is already stored, returns the
        existing sequence without inserting a duplicate.
        """
        event_uuid = event_uuid or event.event_uuid
        if event_uuid:
            existing = self._find_by_uuid(ledger_id, event_uuid)
            if existing is not None:
                return existing

        for attempt in range(_MAX_RETRIES):
            try:
                with self._conn:
                    seq = self._next_sequence(ledger_id)
                    self._conn.execute(_INSERT_SQL, self._row(ledger_id, seq, event, event_uuid))
                return seq
            except sqlite3.IntegrityError:
                if attempt == _MAX_RETRIES - 1:
                    raise
                continue

        raise RuntimeError("append_event: exhausted retries")  # pragma: no cover

    def replace_all_events(self, ledger_id: str, events: List[BaseEvent]) -> List[int]:
        """Atomically replace a ledger's stream. Sequences restart at 1."""
        sequences: List[int] = []
        with self._conn:
            self._conn.execute("DELETE FROM events WHERE ledger_id = ?", (ledger_id,))
            self._conn.execute("DELETE FROM stream_metadata WHERE ledger_id = ?", (ledger_id,))
            for seq, event in enumerate(events, 1):
                self._conn.execute(
                    _INSERT_SQL, self._row(ledger_id, seq, event, event.event_uuid),
                )
                sequences.append(seq)
        return sequences

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_events(
        self, ledger_id: str, after_sequence: int = 0,
    ) -> List[BaseEvent]:
        """Load typed events ordered by sequence."""
        cursor = self._conn.execute(
            """
            SELECT event_type, timestamp, payload_json, sequence, event_uuid
            FROM events
            WHERE ledger_id = ? AND sequence > ?
            ORDER BY sequence
            """,
            (ledger_id, after_sequence),
        )
        return [self._to_event(row) for row in cursor]

    def get_last_sequence(self, ledger_id: str) -> int:
        """Return the highest sequence number for a ledger, or 0 if none."""
        cursor = self._conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) FROM events WHERE ledger_id = ?",
            (ledger_id,),
        )
        return cursor.fetchone()[0]

    def list_ledgers(self) -> List[dict]:
        cursor = self._conn.execute(
            """
            SELECT e.ledger_id, MAX(e.sequence), m.last_state_hash, m.updated_at
            FROM events e
            LEFT JOIN stream_metadata m ON m.ledger_id = e.ledger_id
            GROUP BY e.ledger_id
            ORDER BY e.ledger_id
            """
        )
        return [
            {
                "ledger_id": row[0],
                "event_count": row[1],
                "state_hash": row[2] or "",
                "updated_at": row[3] or "",
            }
            for row in cursor
        ]

    def load_event_by_uuid(
        self, ledger_id: str, event_uuid: str,
    ) -> Optional[BaseEvent]:
        cursor = self._conn.execute(
            """
            SELECT event_type, timestamp, payload_json, sequence, event_uuid
            FROM events
            WHERE ledger_id = ? AND event_uuid = ?
            """,
            (ledger_id, event_uuid),
        )
        row = cursor.fetchone()
        return self._to_event(row) if row is not None else None

    # ------------------------------------------------------------------
    # Stream metadata
    # ------------------------------------------------------------------

    def update_metadata(
        self, ledger_id: str, sequence: int, state_hash: str,
    ) -> None:
        """Upsert stream metadata with the latest known hash."""
        now = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO stream_metadata
                    (ledger_id, last_sequence, last_state_hash, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(ledger_id) DO UPDATE SET
                    last_sequence = excluded.last_sequence,
                    last_state_hash = excluded.last_state_hash,
                    updated_at = excluded.updated_at
                """,
                (ledger_id, sequence, state_hash, now),
            )

    def load_metadata(self, ledger_id: str) -> Optional[Tuple[int, str]]:
        """Returns (last_sequence, last_state_hash) or None."""
        cursor = self._conn.execute(
            "SELECT last_sequence, last_state_hash FROM stream_metadata WHERE ledger_id = ?",
            (ledger_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return (row[0], row[1])

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find_by_uuid(self, ledger_id: str, event_uuid: str) -> Optional[int]:
        cursor = self._conn.execute(
            "SELECT sequence FROM events WHERE ledger_id = ? AND event_uuid = ?",
            (ledger_id, event_uuid),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def _next_sequence(self, ledger_id: str) -> int:
        """MUST be called inside a transaction."""
        cursor = self._conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) FROM events WHERE ledger_id = ?",
            (ledger_id,),
        )
        return cursor.fetchone()[0] + 1

    @staticmethod
    def _row(ledger_id: str, seq: int, event: BaseEvent, event_uuid: str) -> tuple:
        event_dict = event.to_dict()
        return (
            ledger_id,
            seq,
            event_dict["event_type"],
            event_dict["timestamp"],
            event_uuid or None,
            json.dumps(event_dict["payload"], ensure_ascii=False, sort_keys=True),
        )

    @staticmethod
    def _to_event(row) -> BaseEvent:
        return reconstruct_event({
            "event_type": row[0],
            "timestamp": row[1],
            "payload": json.loads(row[2]),
            "sequence": row[3],
            "event_uuid": row[4] or "",
        })

    def close(self) -> None:
        self._conn.close()
