"""Tests for jsonstore_core.audit.commit_journal."""
import json
from pathlib import Path

from jsonstore_core.audit.commit_journal import (
    EVENT_CHUNK_COMMITTED,
    EVENT_FLUSH_COMPLETED,
    CommitEvent,
    CommitJournal,
)


def test_emit_and_read_back(tmp_journal: CommitJournal) -> None:
    tmp_journal.emit(
        CommitEvent(
            event_type=EVENT_CHUNK_COMMITTED,
            dataset="ds1",
            revision=42,
            table_name="t1",
            row_count=3,
            details={"note": "x"},
        )
    )
    [event] = tmp_journal.recent_events()
    assert event["event_type"] == EVENT_CHUNK_COMMITTED
    assert event["table_name"] == "t1"
    assert event["revision"] == 42
    assert event["row_count"] == 3
    assert json.loads(event["details_json"]) == {"note": "x"}


def test_recent_events_newest_first_and_limited(tmp_journal: CommitJournal) -> None:
    for rev in (1, 2, 3):
        tmp_journal.emit(CommitEvent(event_type=EVENT_FLUSH_COMPLETED, dataset="ds1", revision=rev))
    events = tmp_journal.recent_events(limit=2)
    assert [e["revision"] for e in events] == [3, 2]


def test_revisions_for_only_counts_completed_flushes(tmp_journal: CommitJournal) -> None:
    tmp_journal.emit(CommitEvent(event_type=EVENT_CHUNK_COMMITTED, dataset="ds1", revision=5, table_name="t"))
    tmp_journal.emit(CommitEvent(event_type=EVENT_FLUSH_COMPLETED, dataset="ds1", revision=7))
    tmp_journal.emit(CommitEvent(event_type=EVENT_FLUSH_COMPLETED, dataset="ds2", revision=9))
    tmp_journal.emit(CommitEvent(event_type=EVENT_FLUSH_COMPLETED, dataset="ds1", revision=7))
    assert tmp_journal.revisions_for("ds1") == [7]


def test_journal_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "commits.db"
    CommitJournal(path).emit(CommitEvent(event_type=EVENT_FLUSH_COMPLETED, dataset="ds1", revision=1))
    assert CommitJournal(path).revisions_for("ds1") == [1]
