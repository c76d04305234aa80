"""Shared pytest fixtures for jsonstore-core tests."""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from jsonstore_core.clock.remote_clock import RemoteClock
from jsonstore_core.store.warehouse import FailedRow, InsertResult, RowError

#: Clock reading returned by the fake warehouse unless a test overrides it.
FIXED_NOW = datetime(2017, 10, 15, 12, 34, 56, 123456, tzinfo=timezone.utc)
#: Revision derived from FIXED_NOW: "20171015123456123456"[1:].strip("0").
FIXED_REVISION = 171015123456123456


# ---------------------------------------------------------------------------
# In-memory warehouse
# ---------------------------------------------------------------------------


class FakeQuery:
    def __init__(self, sql: str, row: dict[str, Any] | None) -> None:
        self.sql = sql
        self.row = row
        self.reloads = 0


class FakeWarehouse:
    """In-memory stand-in for the remote warehouse.

    Knobs
    -----
    now:
        Value returned for ``CURRENT_TIMESTAMP()`` queries.
    polls_needed:
        Reloads before a query reports complete (``None`` = never).
    query_row:
        Row returned for any non-clock query.
    failures:
        ``{table: [(index, reason, message), ...]}`` rejected on bulk insert.
    """

    def __init__(self) -> None:
        self.now: Any = FIXED_NOW
        self.polls_needed: int | None = 0
        self.query_row: dict[str, Any] | None = None
        self.failures: dict[str, list[tuple[int, str, str]]] = {}
        self.datasets: dict[str, str] = {}
        self.tables: dict[tuple[str, str], tuple] = {}
        self.rows: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.queries: list[str] = []
        self.insert_calls: list[tuple[str, str, list[dict[str, Any]]]] = []
        self.created_tables: list[tuple[str, str]] = []

    def dataset_exists(self, dataset: str) -> bool:
        return dataset in self.datasets

    def create_dataset(self, dataset: str, *, location: str) -> None:
        self.datasets.setdefault(dataset, location)

    def table_exists(self, dataset: str, table: str) -> bool:
        return (dataset, table) in self.tables

    def create_table(self, dataset: str, table: str, schema) -> None:
        self.created_tables.append((dataset, table))
        self.tables.setdefault((dataset, table), tuple(schema))

    def run_query(self, sql: str) -> FakeQuery:
        self.queries.append(sql)
        if "CURRENT_TIMESTAMP()" in sql:
            return FakeQuery(sql, {"now": self.now})
        return FakeQuery(sql, self.query_row)

    def is_complete(self, handle: FakeQuery) -> bool:
        return self.polls_needed is not None and handle.reloads >= self.polls_needed

    def reload(self, handle: FakeQuery) -> None:
        handle.reloads += 1

    def first_row(self, handle: FakeQuery) -> dict[str, Any] | None:
        return handle.row

    def bulk_insert(self, dataset: str, table: str, rows) -> InsertResult:
        rows = list(rows)
        self.insert_calls.append((dataset, table, rows))
        if table in self.failures:
            return InsertResult(
                failed_rows=tuple(
                    FailedRow(row=rows[i], errors=(RowError(reason=r, message=m),))
                    for i, r, m in self.failures[table]
                )
            )
        self.rows.setdefault((dataset, table), []).extend(rows)
        return InsertResult()

    def clock_queries(self) -> int:
        return sum(1 for q in self.queries if "CURRENT_TIMESTAMP()" in q)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_warehouse() -> FakeWarehouse:
    """A fresh, empty in-memory warehouse."""
    return FakeWarehouse()


@pytest.fixture
def sleeps() -> list[float]:
    """Records every delay requested by a clock built with ``fast_clock``."""
    return []


@pytest.fixture
def fast_clock(fake_warehouse: FakeWarehouse, sleeps: list[float]) -> RemoteClock:
    """RemoteClock over ``fake_warehouse`` that records sleeps instead of blocking."""
    return RemoteClock(fake_warehouse, max_attempts=5, sleep=sleeps.append)


@pytest.fixture
def store(fake_warehouse: FakeWarehouse, fast_clock: RemoteClock):
    """A JsonStore over the fake warehouse, started on dataset ``ds1``."""
    from jsonstore_core.session import JsonStore

    s = JsonStore(fake_warehouse, clock=fast_clock)
    s.start("ds1")
    return s


@pytest.fixture
def tmp_journal(tmp_path: Path):
    """A fresh CommitJournal backed by a temp SQLite file."""
    from jsonstore_core.audit.commit_journal import CommitJournal

    return CommitJournal(tmp_path / "commits.db")
