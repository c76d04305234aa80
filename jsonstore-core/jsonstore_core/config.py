"""Store configuration: value checks and the JSON config file.

Config file format (all keys optional except ``dataset``)::

    {
      "project": "my-gcp-project",
      "dataset": "crm",
      "location": "EU",
      "partition": 3,
      "version": "1.2.0",
      "journal_path": "/var/lib/jsonstore/commits.db"
    }
"""
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema

from jsonstore_core.errors import ConfigurationError
from jsonstore_core.store.warehouse import LOCATION_EU, LOCATIONS

DEFAULT_VERSION = "1.0.0"
MINIMUM_VERSION = (0, 0, 1)

_VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["dataset"],
    "properties": {
        "project": {"type": "string", "minLength": 1},
        "dataset": {"type": "string", "minLength": 1},
        "location": {"enum": list(LOCATIONS)},
        "partition": {"type": "integer", "minimum": 1},
        "version": {"type": "string"},
        "journal_path": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


# ---------------------------------------------------------------------------
# Value checks
# ---------------------------------------------------------------------------


def check_location(location: str) -> str:
    if location not in LOCATIONS:
        raise ConfigurationError(
            f"Unknown location {location!r} (valid: {' or '.join(LOCATIONS)})"
        )
    return location


def check_partition(partition: Any) -> int:
    # bool is an int subclass; True is not a partition key.
    if isinstance(partition, bool) or not isinstance(partition, int) or partition < 1:
        raise ConfigurationError("Partition key has to be a positive integer numeric value")
    return partition


def check_version(version: Any) -> str:
    """Accept ``x.y.z`` version strings at or above ``0.0.1``."""
    match = _VERSION_RE.fullmatch(version) if isinstance(version, str) else None
    if match is None or tuple(int(p) for p in match.groups()) < MINIMUM_VERSION:
        raise ConfigurationError(
            f"Invalid version number {version!r} (expected x.y.z, at least 0.0.1)"
        )
    return version


# ---------------------------------------------------------------------------
# Config file
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoreConfig:
    """Settings used to build a :class:`~jsonstore_core.session.JsonStore`."""

    dataset: str
    project: str | None = None
    location: str = LOCATION_EU
    partition: int | None = None
    version: str = DEFAULT_VERSION
    journal_path: Path | None = None


def load_config(path: Path) -> StoreConfig:
    """Read and validate a JSON config file.

    Raises
    ------
    ConfigurationError
        If the file is not valid JSON, does not match :data:`CONFIG_SCHEMA`,
        or carries an invalid version string.
    """
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in config file {path}: {exc}") from exc

    try:
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise ConfigurationError(f"Config file {path} is invalid: {exc.message}") from exc

    journal_path = data.get("journal_path")
    return StoreConfig(
        dataset=data["dataset"],
        project=data.get("project"),
        location=data.get("location", LOCATION_EU),
        partition=data.get("partition"),
        version=check_version(data.get("version", DEFAULT_VERSION)),
        journal_path=Path(journal_path) if journal_path else None,
    )
