"""Loader command: ``jsonstore-load``.

Subcommands:

``load CONFIG MUTATIONS``
    Read NDJSON mutations and commit them as one revision.  Each line is::

        {"table": "contacts", "uid": "c-1", "payload": {...}, "parent_uid": null}
        {"table": "contacts", "uid": "c-2", "event": "DEL"}

    Every line is validated before anything is sent; one bad line aborts the
    whole load.

``max-value CONFIG TABLE JSON_PATH``
    Print the incremental-load watermark for TABLE.
"""
import json
import sys
from pathlib import Path
from typing import Any, Iterable

import jsonschema
from google.api_core.exceptions import GoogleAPIError

from jsonstore_core.config import StoreConfig, load_config
from jsonstore_core.errors import (
    CommitFailure,
    ConfigurationError,
    InvalidTimestamp,
    PayloadTypeError,
    QueryTimeoutError,
)
from jsonstore_core.session import JsonStore
from jsonstore_core.store.buffer import EVENT_DEL, EVENT_UPD

MUTATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["table", "uid"],
    "properties": {
        "table": {"type": "string"},
        "uid": {"type": "string"},
        "parent_uid": {"type": ["string", "null"]},
        "event": {"enum": [EVENT_UPD, EVENT_DEL]},
        "payload": {"type": ["object", "array"]},
    },
    "additionalProperties": False,
}


class MutationLineError(ValueError):
    """Raised when an NDJSON mutation line is not valid JSON or fails the schema."""


# ---------------------------------------------------------------------------
# Core loading logic
# ---------------------------------------------------------------------------


def parse_mutations(lines: Iterable[str]) -> list[dict[str, Any]]:
    """Parse and validate NDJSON mutation lines.  Blank lines are skipped.

    Raises
    ------
    MutationLineError
        With the 1-based line number of the first invalid line.
    """
    mutations = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            mutation = json.loads(line)
        except json.JSONDecodeError as exc:
            raise MutationLineError(f"line {lineno}: invalid JSON: {exc}") from exc
        try:
            jsonschema.validate(instance=mutation, schema=MUTATION_SCHEMA)
        except jsonschema.ValidationError as exc:
            raise MutationLineError(f"line {lineno}: {exc.message}") from exc
        if mutation.get("event", EVENT_UPD) == EVENT_UPD and "payload" not in mutation:
            raise MutationLineError(f"line {lineno}: UPD mutation requires a payload")
        mutations.append(mutation)
    return mutations


def apply_mutations(store: JsonStore, mutations: Iterable[dict[str, Any]]) -> int:
    """Buffer *mutations* on *store*; return how many were buffered."""
    count = 0
    for m in mutations:
        if m.get("event", EVENT_UPD) == EVENT_DEL:
            store.delete(m["table"], m["uid"])
        else:
            store.add(m["table"], m["uid"], m["payload"], m.get("parent_uid"))
        count += 1
    return count


def _build_warehouse(config: StoreConfig, credentials: Path | None):
    from jsonstore_core.store.bigquery import BigQueryWarehouse

    return BigQueryWarehouse.from_project(config.project, credentials)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Entry point for ``jsonstore-load`` command."""
    import argparse

    parser = argparse.ArgumentParser(description="Load JSON documents into a versioned jsonstore.")
    parser.add_argument("--credentials", type=Path, help="Service account key file (JSON)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_load = sub.add_parser("load", help="Commit NDJSON mutations as one revision")
    p_load.add_argument("config", type=Path, help="Path to store config JSON")
    p_load.add_argument("mutations", type=Path, help="Path to NDJSON mutations file")

    p_max = sub.add_parser("max-value", help="Print the maximum value of a JSON path")
    p_max.add_argument("config", type=Path, help="Path to store config JSON")
    p_max.add_argument("table", help="Table name")
    p_max.add_argument("json_path", help="JSON path, e.g. $.updated_at")

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigurationError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)

    if args.command == "load":
        try:
            mutations = parse_mutations(args.mutations.read_text().splitlines())
        except (MutationLineError, OSError) as exc:
            print(f"ERROR: {args.mutations}: {exc}", file=sys.stderr)
            raise SystemExit(1)

        store = JsonStore.from_config(config, _build_warehouse(config, args.credentials))
        try:
            store.start(config.dataset)
            apply_mutations(store, mutations)
            report = store.flush()
        except (
            CommitFailure,
            GoogleAPIError,
            InvalidTimestamp,
            PayloadTypeError,
            QueryTimeoutError,
        ) as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            raise SystemExit(1)

        print(f"Committed revision {report.revision} to {config.dataset}")
        for table, rows in sorted(report.rows_by_table.items()):
            print(f"  {table}: {rows} row(s)")
        return

    store = JsonStore.from_config(config, _build_warehouse(config, args.credentials))
    try:
        value = store.fetch_max_json_value(config.dataset, args.table, args.json_path)
    except (ConfigurationError, GoogleAPIError, QueryTimeoutError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
    if value is None:
        print(f"ERROR: {config.dataset}.{args.table} does not exist", file=sys.stderr)
        raise SystemExit(1)
    print(value)
