"""JsonStore: append-only, versioned storage for JSON documents by unique key.

Usage::

    store = JsonStore(BigQueryWarehouse.from_project("my-project"))
    store.set_location("EU")
    store.start("crm")
    store.add("contacts", "c-1", {"name": "Ada"})
    store.delete("contacts", "c-2")
    report = store.flush()      # one revision for every row of this flush

Each flush appends new immutable rows; nothing is updated in place.  The
latest state of a uid is the row with the highest revision, and a ``DEL``
row marks it deleted.

A session keeps its revision across flushes.  Call :meth:`JsonStore.start`
again to begin a new revision.
"""
import logging
import re
from typing import Any

from jsonstore_core.audit.commit_journal import CommitJournal
from jsonstore_core.clock.remote_clock import RemoteClock
from jsonstore_core.config import (
    DEFAULT_VERSION,
    StoreConfig,
    check_location,
    check_partition,
    check_version,
)
from jsonstore_core.errors import ConfigurationError
from jsonstore_core.identity.content_hash import Base58Encoder, ContentHasher
from jsonstore_core.store.buffer import partition_suffix
from jsonstore_core.store.commit import BatchSession, CommitOrchestrator, CommitReport
from jsonstore_core.store.payload import JsonObjectCodec
from jsonstore_core.store.warehouse import LOCATION_EU, WarehouseClient

_JSON_PATH_RE = re.compile(r"\$(?:\.\w+|\[\d+\])*")


class JsonStore:
    """Batch session facade over the buffer, clock and commit orchestrator.

    Parameters
    ----------
    warehouse:
        Remote store implementing :class:`~jsonstore_core.store.warehouse.WarehouseClient`.
    project:
        Optional project id used to qualify table names in read queries.
    clock:
        Revision source and query runner.  Defaults to a :class:`RemoteClock`
        over *warehouse*.
    codec:
        Payload codec with ``encode(payload) -> str``.
    journal:
        Optional local commit journal.
    """

    def __init__(
        self,
        warehouse: WarehouseClient,
        *,
        project: str | None = None,
        clock: RemoteClock | None = None,
        codec: Any = None,
        journal: CommitJournal | None = None,
    ) -> None:
        self._warehouse = warehouse
        self._project = project
        self._clock = clock or RemoteClock(warehouse)
        self._codec = codec or JsonObjectCodec()
        self._logger = logging.getLogger("jsonstore.session")
        self._location = LOCATION_EU
        self._partition_suffix = ""
        self._version = DEFAULT_VERSION
        self._session = BatchSession()
        self._orchestrator = CommitOrchestrator(
            warehouse,
            self._clock,
            ContentHasher(Base58Encoder),
            journal=journal,
        )

    @classmethod
    def from_config(cls, config: StoreConfig, warehouse: WarehouseClient) -> "JsonStore":
        """Build a store with location, partition, version and journal from *config*."""
        journal = CommitJournal(config.journal_path) if config.journal_path else None
        store = cls(warehouse, project=config.project, journal=journal)
        store.set_location(config.location)
        if config.partition is not None:
            store.set_partition(config.partition)
        store.set_version(config.version)
        return store

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_location(self, location: str) -> None:
        self._location = check_location(location)

    def set_partition(self, partition: int) -> None:
        """Route later mutations to ``<table>_<partition>`` tables."""
        self._partition_suffix = partition_suffix(check_partition(partition))

    def set_version(self, version: str) -> None:
        """Set the schema version stamped on later mutations (``x.y.z``, >= 0.0.1)."""
        self._version = check_version(version)

    def set_encoder(self, encoder: Any) -> None:
        """Replace the content hash encoder (``nacl.encoding`` interface)."""
        self._orchestrator.hasher = ContentHasher(encoder)

    def set_logger(self, logger: logging.Logger) -> None:
        """Send session, commit and clock messages to *logger*.

        A clock passed in that is not a :class:`RemoteClock` keeps its own logger.
        """
        if not isinstance(logger, logging.Logger):
            raise ConfigurationError(f"Expected a logging.Logger, got {type(logger).__name__}")
        self._logger = logger
        self._orchestrator.logger = logger
        if isinstance(self._clock, RemoteClock):
            self._clock.logger = logger

    @property
    def location(self) -> str:
        return self._location

    @property
    def version(self) -> str:
        return self._version

    @property
    def revision(self) -> int:
        """Revision pinned by the last flush of this session, or 0."""
        return self._session.revision

    @property
    def pending(self) -> int:
        """Number of buffered mutations not yet flushed."""
        return len(self._session.buffer)

    # ------------------------------------------------------------------
    # Batch lifecycle
    # ------------------------------------------------------------------

    def start(self, dataset: str) -> None:
        """Open a new batch on *dataset*, creating the dataset if needed.

        Discards any unflushed mutations and resets the revision to 0.
        """
        self._logger.info("Starting batch on dataset %s", dataset)
        self._session = BatchSession(dataset=dataset)

        if not self._warehouse.dataset_exists(dataset):
            self._logger.info("Creating dataset %s in %s", dataset, self._location)
            self._warehouse.create_dataset(dataset, location=self._location)

    def add(
        self,
        table: str,
        uid: str,
        payload: Any,
        parent_uid: str | None = None,
    ) -> None:
        """Buffer an upsert of *payload* (serialised as a JSON object) for *uid*."""
        self._session.buffer.enqueue_upsert(
            table,
            uid,
            self._codec.encode(payload),
            self._version,
            parent_uid=parent_uid,
            partition_suffix=self._partition_suffix,
        )

    def delete(self, table: str, uid: str) -> None:
        """Buffer a tombstone for *uid*."""
        self._session.buffer.enqueue_tombstone(
            table,
            uid,
            self._version,
            partition_suffix=self._partition_suffix,
        )

    def flush(self) -> CommitReport:
        """Write all buffered mutations under the session revision.

        See :meth:`CommitOrchestrator.flush` for the sequence and errors.
        """
        return self._orchestrator.flush(self._session)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def fetch_max_json_value(self, dataset: str, table: str, json_path: str) -> str | None:
        """Return the maximum value at *json_path* across *table*.

        Used as the watermark for incremental loads (e.g. ``$.updated_at``).

        Returns
        -------
        str | None
            The maximum value with surrounding double quotes stripped, ``""``
            when no row has a value, or ``None`` if the dataset or table does
            not exist.

        Raises
        ------
        ConfigurationError
            If *json_path* is not a simple ``$.a.b[0]`` style path.
        QueryTimeoutError
            If the query does not complete in time.
        """
        if not _JSON_PATH_RE.fullmatch(json_path):
            raise ConfigurationError(f"Unsupported JSON path {json_path!r}")

        if not (
            self._warehouse.dataset_exists(dataset)
            and self._warehouse.table_exists(dataset, table)
        ):
            return None

        qualified = f"{dataset}.{table}"
        if self._project:
            qualified = f"{self._project}.{qualified}"
        sql = (
            f"SELECT MAX(JSON_EXTRACT(json, '{json_path}')) AS maxvalue "
            f"FROM `{qualified}` LIMIT 1"
        )
        row = self._clock.fetch_row(sql)
        value = row.get("maxvalue") if row is not None else None
        if value is None:
            return ""
        return str(value).strip('"')
