"""Remote warehouse contract required by the ledger.

The ledger only needs dataset/table provisioning, a pollable query, and a
bulk row insert.  :class:`WarehouseClient` names that surface;
:mod:`jsonstore_core.store.bigquery` implements it for Google BigQuery and
the test suite implements it in memory.

Physical table schema (every ledger table)::

    id          STRING  REQUIRED
    revision    INT64   REQUIRED
    parent_uid  STRING  NULLABLE
    uid         STRING  REQUIRED
    hash        STRING  REQUIRED
    event       STRING  REQUIRED
    version     STRING  REQUIRED
    json        STRING  REQUIRED
"""
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

LOCATION_EU = "EU"
LOCATION_US = "US"
LOCATIONS = (LOCATION_EU, LOCATION_US)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnSpec:
    """One column of the fixed ledger table schema."""

    name: str
    type: str
    required: bool = True


TABLE_SCHEMA: tuple[ColumnSpec, ...] = (
    ColumnSpec("id", "STRING"),
    ColumnSpec("revision", "INT64"),
    ColumnSpec("parent_uid", "STRING", required=False),
    ColumnSpec("uid", "STRING"),
    ColumnSpec("hash", "STRING"),
    ColumnSpec("event", "STRING"),
    ColumnSpec("version", "STRING"),
    ColumnSpec("json", "STRING"),
)


# ---------------------------------------------------------------------------
# Bulk insert result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowError:
    """A single reason a row was rejected."""

    reason: str
    message: str


@dataclass(frozen=True)
class FailedRow:
    """A rejected row with every reason the warehouse gave for it."""

    row: Mapping[str, Any]
    errors: tuple[RowError, ...]


@dataclass(frozen=True)
class InsertResult:
    """Outcome of one bulk insert call."""

    failed_rows: tuple[FailedRow, ...] = field(default_factory=tuple)

    @property
    def successful(self) -> bool:
        return not self.failed_rows


# ---------------------------------------------------------------------------
# Client protocol
# ---------------------------------------------------------------------------


class WarehouseClient(Protocol):
    """Operations the ledger calls on the remote store."""

    def dataset_exists(self, dataset: str) -> bool: ...

    def create_dataset(self, dataset: str, *, location: str) -> None: ...

    def table_exists(self, dataset: str, table: str) -> bool: ...

    def create_table(
        self, dataset: str, table: str, schema: Sequence[ColumnSpec]
    ) -> None: ...

    def run_query(self, sql: str) -> Any: ...

    def is_complete(self, handle: Any) -> bool: ...

    def reload(self, handle: Any) -> None: ...

    def first_row(self, handle: Any) -> Mapping[str, Any] | None: ...

    def bulk_insert(
        self, dataset: str, table: str, rows: Sequence[Mapping[str, Any]]
    ) -> InsertResult: ...
