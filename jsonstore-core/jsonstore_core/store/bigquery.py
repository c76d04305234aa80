"""Google BigQuery implementation of the warehouse contract.

Query handles are :class:`google.cloud.bigquery.QueryJob` objects.  Bulk
writes use the streaming ``insert_rows_json`` API, which reports per-row
errors as ``{"index": i, "errors": [{"reason": ..., "message": ...}]}``.
"""
from pathlib import Path
from typing import Any, Mapping, Sequence

from google.api_core.exceptions import NotFound
from google.cloud import bigquery

from jsonstore_core.store.warehouse import ColumnSpec, FailedRow, InsertResult, RowError


def schema_fields(schema: Sequence[ColumnSpec]) -> list[bigquery.SchemaField]:
    """Translate :class:`ColumnSpec` tuples into BigQuery schema fields."""
    return [
        bigquery.SchemaField(
            col.name, col.type, mode="REQUIRED" if col.required else "NULLABLE"
        )
        for col in schema
    ]


def failed_rows_from_errors(
    errors: Sequence[Mapping[str, Any]],
    rows: Sequence[Mapping[str, Any]],
) -> tuple[FailedRow, ...]:
    """Convert ``insert_rows_json`` error mappings into :class:`FailedRow` objects."""
    failed = []
    for entry in errors:
        index = entry.get("index")
        row = rows[index] if isinstance(index, int) and 0 <= index < len(rows) else {}
        failed.append(
            FailedRow(
                row=row,
                errors=tuple(
                    RowError(reason=e.get("reason", ""), message=e.get("message", ""))
                    for e in entry.get("errors", [])
                ),
            )
        )
    return tuple(failed)


class BigQueryWarehouse:
    """Warehouse client backed by :class:`google.cloud.bigquery.Client`.

    Parameters
    ----------
    client:
        Configured BigQuery client.  Its ``project`` owns every dataset.
    """

    def __init__(self, client: bigquery.Client) -> None:
        self._client = client

    @classmethod
    def from_project(
        cls, project: str | None, credentials_path: Path | None = None
    ) -> "BigQueryWarehouse":
        """Create a client for *project*, optionally from a service account key file."""
        if credentials_path is not None:
            client = bigquery.Client.from_service_account_json(
                str(credentials_path), project=project
            )
        else:
            client = bigquery.Client(project=project)
        return cls(client)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _dataset_ref(self, dataset: str) -> bigquery.DatasetReference:
        return bigquery.DatasetReference(self._client.project, dataset)

    def _table_ref(self, dataset: str, table: str) -> bigquery.TableReference:
        return self._dataset_ref(dataset).table(table)

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def dataset_exists(self, dataset: str) -> bool:
        try:
            self._client.get_dataset(self._dataset_ref(dataset))
        except NotFound:
            return False
        return True

    def create_dataset(self, dataset: str, *, location: str) -> None:
        ds = bigquery.Dataset(self._dataset_ref(dataset))
        ds.location = location
        self._client.create_dataset(ds, exists_ok=True)

    def table_exists(self, dataset: str, table: str) -> bool:
        try:
            self._client.get_table(self._table_ref(dataset, table))
        except NotFound:
            return False
        return True

    def create_table(self, dataset: str, table: str, schema: Sequence[ColumnSpec]) -> None:
        tbl = bigquery.Table(self._table_ref(dataset, table), schema=schema_fields(schema))
        self._client.create_table(tbl, exists_ok=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def run_query(self, sql: str) -> bigquery.QueryJob:
        return self._client.query(sql)

    def is_complete(self, handle: bigquery.QueryJob) -> bool:
        return handle.done()

    def reload(self, handle: bigquery.QueryJob) -> None:
        handle.reload()

    def first_row(self, handle: bigquery.QueryJob) -> Mapping[str, Any] | None:
        return next(iter(handle.result()), None)

    # ------------------------------------------------------------------
    # Bulk insert
    # ------------------------------------------------------------------

    def bulk_insert(
        self, dataset: str, table: str, rows: Sequence[Mapping[str, Any]]
    ) -> InsertResult:
        rows = list(rows)
        if not rows:
            return InsertResult()
        errors = self._client.insert_rows_json(self._table_ref(dataset, table), rows)
        return InsertResult(failed_rows=failed_rows_from_errors(errors, rows))
