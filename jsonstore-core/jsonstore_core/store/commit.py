"""Flush a batch session to the warehouse.

Flush sequence:
  1. Provision: create every chunk's physical table if it does not exist.
  2. Pin revision: if the session has none yet, read it from the clock once.
  3. Stamp: compute id, hash and revision for every record of every chunk.
  4. Write: one bulk insert per chunk; any failed row aborts the flush with
     :class:`~jsonstore_core.errors.CommitFailure`.
  5. Clear the buffer, only after every chunk was written.

A flush is atomic per table, not across tables: chunks written before a
failing chunk stay written.  Retrying the whole flush is safe because the
store is append-only and the retry reuses the pinned revision, so resent rows
are identical duplicates.
"""
import logging
from dataclasses import dataclass, field
from typing import Protocol

from jsonstore_core.audit.commit_journal import (
    EVENT_CHUNK_COMMITTED,
    EVENT_CHUNK_FAILED,
    EVENT_FLUSH_COMPLETED,
    CommitEvent,
    CommitJournal,
)
from jsonstore_core.errors import CommitFailure, SessionNotStartedError
from jsonstore_core.identity.content_hash import ContentHasher, record_id
from jsonstore_core.store.buffer import BufferedRecord, ChunkKey, RecordBuffer, StampedRecord
from jsonstore_core.store.warehouse import TABLE_SCHEMA, WarehouseClient


class RevisionSource(Protocol):
    def current_revision(self) -> int: ...


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class BatchSession:
    """State of one open batch: target dataset, pinned revision, pending records.

    ``revision`` is 0 until the first flush pins it.
    """

    dataset: str | None = None
    revision: int = 0
    buffer: RecordBuffer = field(default_factory=RecordBuffer)


@dataclass(frozen=True)
class CommitReport:
    """Returned by :meth:`CommitOrchestrator.flush` on success."""

    dataset: str | None
    revision: int
    rows_by_table: dict[str, int]

    @property
    def total_rows(self) -> int:
        return sum(self.rows_by_table.values())


def stamp_record(record: BufferedRecord, revision: int, hasher: ContentHasher) -> StampedRecord:
    """Attach revision, row id and content hash to *record*."""
    return StampedRecord(
        id=record_id(revision, record.uid),
        revision=revision,
        uid=record.uid,
        parent_uid=record.parent_uid,
        hash=hasher.digest(record.uid, record.parent_uid, record.version, record.json),
        event=record.event,
        version=record.version,
        json=record.json,
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class CommitOrchestrator:
    """Run the provision, pin, stamp, write and clear sequence for a session.

    Parameters
    ----------
    warehouse:
        Remote store for table provisioning and bulk inserts.
    clock:
        Revision source, called at most once per session.
    hasher:
        Content hasher used while stamping.
    logger:
        Progress logger.  Defaults to ``jsonstore.commit``.
    journal:
        Optional local commit journal.
    """

    def __init__(
        self,
        warehouse: WarehouseClient,
        clock: RevisionSource,
        hasher: ContentHasher,
        *,
        logger: logging.Logger | None = None,
        journal: CommitJournal | None = None,
    ) -> None:
        self._warehouse = warehouse
        self._clock = clock
        self.hasher = hasher
        self.logger = logger or logging.getLogger("jsonstore.commit")
        self._journal = journal

    def flush(self, session: BatchSession) -> CommitReport:
        """Commit every buffered record of *session* under one revision.

        Returns
        -------
        CommitReport
            Revision used and rows written per physical table.

        Raises
        ------
        SessionNotStartedError
            If records are buffered but the session has no dataset.
        ClockUnavailable, InvalidTimestamp
            If the revision cannot be read from the warehouse clock.
        CommitFailure
            If a bulk insert reports failed rows.  The buffer is left intact.
        """
        self.logger.info("Committing data chunks to warehouse")

        keys = session.buffer.keys()
        if keys and session.dataset is None:
            raise SessionNotStartedError(
                f"{len(session.buffer)} buffered record(s) but no dataset; call start() first"
            )

        # Step 1: provision tables.
        for key in keys:
            self._ensure_table(session.dataset, key)

        # Step 2: pin revision for the whole session.
        if session.revision == 0:
            session.revision = self._clock.current_revision()
        revision = session.revision

        # Step 3: stamp everything before any write.
        stamped: list[tuple[ChunkKey, list[StampedRecord]]] = [
            (key, [stamp_record(rec, revision, self.hasher) for rec in records])
            for key, records in session.buffer.chunks()
        ]

        # Step 4: one bulk insert per chunk.
        rows_by_table: dict[str, int] = {}
        for key, records in stamped:
            table = key.physical_name
            self.logger.info("Writing chunk %s (%d rows)", table, len(records))
            result = self._warehouse.bulk_insert(
                session.dataset, table, [rec.to_row() for rec in records]
            )
            if not result.successful:
                failure = CommitFailure(table, list(result.failed_rows))
                self.logger.error("Bulk insert into %s failed: %s", table, "; ".join(failure.reasons))
                self._journal_emit(
                    EVENT_CHUNK_FAILED, session, revision, table, len(records),
                    details={"reasons": failure.reasons},
                )
                raise failure
            rows_by_table[table] = rows_by_table.get(table, 0) + len(records)
            self._journal_emit(EVENT_CHUNK_COMMITTED, session, revision, table, len(records))

        # Step 5: clear only after every chunk succeeded.
        session.buffer.clear()
        report = CommitReport(
            dataset=session.dataset, revision=revision, rows_by_table=rows_by_table
        )
        self._journal_emit(EVENT_FLUSH_COMPLETED, session, revision, None, report.total_rows)
        self.logger.info("Flush ready (revision %d, %d rows)", revision, report.total_rows)
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_table(self, dataset: str, key: ChunkKey) -> None:
        table = key.physical_name
        if not self._warehouse.table_exists(dataset, table):
            self.logger.info("Creating table %s", table)
            self._warehouse.create_table(dataset, table, TABLE_SCHEMA)

    def _journal_emit(
        self,
        event_type: str,
        session: BatchSession,
        revision: int,
        table: str | None,
        row_count: int,
        details: dict | None = None,
    ) -> None:
        if self._journal is None or session.dataset is None:
            return
        self._journal.emit(
            CommitEvent(
                event_type=event_type,
                dataset=session.dataset,
                revision=revision,
                table_name=table,
                row_count=row_count,
                details=details,
            )
        )
