"""In-memory buffer of pending mutations for one open batch.

Records are grouped into chunks keyed by ``(table, partition_suffix)``; each
chunk keeps its records in enqueue order.  Nothing here performs I/O.

Multiple mutations for the same uid are all retained.  Writing one uid twice
in a single revision yields two rows with the same revision, which readers
cannot order; callers that overwrite within a batch must start a new session.
"""
from dataclasses import dataclass
from typing import Any, Iterator

from jsonstore_core.store.payload import EMPTY_OBJECT

EVENT_UPD = "UPD"
EVENT_DEL = "DEL"
PARTITION_DELIMITER = "_"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkKey:
    """Composite key of one chunk: logical table plus partition suffix."""

    table: str
    partition_suffix: str = ""

    @property
    def physical_name(self) -> str:
        """Warehouse table name, e.g. ``orders_3`` for table ``orders`` partition 3."""
        return self.table + self.partition_suffix


@dataclass(frozen=True)
class BufferedRecord:
    """A pending upsert or tombstone, before revision/id/hash are known."""

    uid: str
    json: str
    version: str
    event: str = EVENT_UPD
    parent_uid: str | None = None


@dataclass(frozen=True)
class StampedRecord:
    """A commit-ready record carrying revision, row id and content hash."""

    id: str
    revision: int
    uid: str
    parent_uid: str | None
    hash: str
    event: str
    version: str
    json: str

    def to_row(self) -> dict[str, Any]:
        """Return the warehouse row for this record."""
        return {
            "id": self.id,
            "revision": self.revision,
            "parent_uid": self.parent_uid,
            "uid": self.uid,
            "hash": self.hash,
            "event": self.event,
            "version": self.version,
            "json": self.json,
        }


def partition_suffix(partition: int) -> str:
    """Return the table suffix for a positive integer *partition* key."""
    return f"{PARTITION_DELIMITER}{partition}"


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------


class RecordBuffer:
    """Ordered, per-chunk queue of :class:`BufferedRecord` objects."""

    def __init__(self) -> None:
        self._chunks: dict[ChunkKey, list[BufferedRecord]] = {}

    def enqueue_upsert(
        self,
        table: str,
        uid: str,
        json_text: str,
        version: str,
        *,
        parent_uid: str | None = None,
        partition_suffix: str = "",
    ) -> ChunkKey:
        """Append an ``UPD`` record carrying the serialised object *json_text*."""
        record = BufferedRecord(
            uid=uid,
            json=json_text,
            version=version,
            event=EVENT_UPD,
            parent_uid=parent_uid,
        )
        return self._append(ChunkKey(table, partition_suffix), record)

    def enqueue_tombstone(
        self,
        table: str,
        uid: str,
        version: str,
        *,
        partition_suffix: str = "",
    ) -> ChunkKey:
        """Append a ``DEL`` record with an empty JSON object payload."""
        record = BufferedRecord(
            uid=uid,
            json=EMPTY_OBJECT,
            version=version,
            event=EVENT_DEL,
        )
        return self._append(ChunkKey(table, partition_suffix), record)

    def _append(self, key: ChunkKey, record: BufferedRecord) -> ChunkKey:
        self._chunks.setdefault(key, []).append(record)
        return key

    def keys(self) -> list[ChunkKey]:
        return list(self._chunks)

    def chunks(self) -> Iterator[tuple[ChunkKey, tuple[BufferedRecord, ...]]]:
        """Yield ``(key, records)`` pairs in first-enqueued order."""
        for key, records in self._chunks.items():
            yield key, tuple(records)

    def is_empty(self) -> bool:
        return not self._chunks

    def clear(self) -> None:
        self._chunks.clear()

    def __len__(self) -> int:
        return sum(len(records) for records in self._chunks.values())
