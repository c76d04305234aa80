"""SQLite-backed local journal of ledger commits.

Every chunk write and every completed flush is appended as one row, so an
operator can see which tables of a partially failed flush were already
applied, and under which revision, before retrying.

WAL journal mode is enabled so readers do not block the writer.
"""
import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

EVENT_CHUNK_COMMITTED = "chunk_committed"
EVENT_CHUNK_FAILED = "chunk_failed"
EVENT_FLUSH_COMPLETED = "flush_completed"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class CommitEvent:
    """A single commit event to be written to the journal."""

    event_type: str
    dataset: str
    revision: int
    table_name: str | None = None
    row_count: int = 0
    timestamp_utc: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    details: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_EVENTS = """
CREATE TABLE IF NOT EXISTS commit_events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type      TEXT NOT NULL,
    dataset         TEXT NOT NULL,
    table_name      TEXT,
    revision        INTEGER NOT NULL,
    row_count       INTEGER NOT NULL,
    timestamp_utc   TEXT NOT NULL,
    details_json    TEXT
);
"""

_CREATE_REVISION_IDX = """
CREATE INDEX IF NOT EXISTS idx_dataset_revision
    ON commit_events (dataset, revision);
"""

_COLUMNS = [
    "id", "event_type", "dataset", "table_name", "revision",
    "row_count", "timestamp_utc", "details_json",
]


# ---------------------------------------------------------------------------
# CommitJournal
# ---------------------------------------------------------------------------


class CommitJournal:
    """Append-only SQLite commit journal.

    Each call opens, uses, and closes a connection.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_EVENTS)
            conn.execute(_CREATE_REVISION_IDX)
            conn.commit()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def emit(self, event: CommitEvent) -> None:
        """Append *event* to the journal."""
        details_json = json.dumps(event.details) if event.details is not None else None
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO commit_events
                    (event_type, dataset, table_name, revision,
                     row_count, timestamp_utc, details_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_type,
                    event.dataset,
                    event.table_name,
                    event.revision,
                    event.row_count,
                    event.timestamp_utc,
                    details_json,
                ),
            )
            conn.commit()

    def recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        """Return the most recent *limit* events as dicts, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {", ".join(_COLUMNS)}
                FROM commit_events
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(zip(_COLUMNS, row)) for row in rows]

    def revisions_for(self, dataset: str) -> list[int]:
        """Return revisions with a completed flush for *dataset*, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT revision
                FROM commit_events
                WHERE dataset = ? AND event_type = ?
                ORDER BY revision
                """,
                (dataset, EVENT_FLUSH_COMPLETED),
            ).fetchall()
        return [row[0] for row in rows]
