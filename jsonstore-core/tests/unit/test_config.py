"""Tests for jsonstore_core.config: value checks and config file loading."""
import json
from pathlib import Path

import pytest

from jsonstore_core.config import (
    StoreConfig,
    check_location,
    check_partition,
    check_version,
    load_config,
)
from jsonstore_core.errors import ConfigurationError


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "store.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return path


# ---------------------------------------------------------------------------
# Value checks
# ---------------------------------------------------------------------------


def test_version_floor() -> None:
    with pytest.raises(ConfigurationError):
        check_version("0.0.0")
    assert check_version("0.0.1") == "0.0.1"
    assert check_version("1.2.3") == "1.2.3"


@pytest.mark.parametrize("version", ["1.2.3\n", "1.2.3 ", "١.2.3"])
def test_version_must_be_plain_ascii_digits(version) -> None:
    with pytest.raises(ConfigurationError):
        check_version(version)


def test_version_must_be_string() -> None:
    with pytest.raises(ConfigurationError):
        check_version(123)


def test_partition_accepts_positive_int() -> None:
    assert check_partition(1) == 1


def test_location_check() -> None:
    assert check_location("EU") == "EU"
    with pytest.raises(ConfigurationError):
        check_location("eu")


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


def test_minimal_config_uses_defaults(tmp_path) -> None:
    config = load_config(_write(tmp_path, {"dataset": "crm"}))
    assert config == StoreConfig(dataset="crm")
    assert config.location == "EU"
    assert config.version == "1.0.0"


def test_full_config(tmp_path) -> None:
    config = load_config(_write(tmp_path, {
        "project": "p1",
        "dataset": "crm",
        "location": "US",
        "partition": 4,
        "version": "2.1.0",
        "journal_path": str(tmp_path / "commits.db"),
    }))
    assert config.project == "p1"
    assert config.partition == 4
    assert config.journal_path == tmp_path / "commits.db"


def test_invalid_json_rejected(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, "{not json"))


@pytest.mark.parametrize("data", [
    {},
    {"dataset": ""},
    {"dataset": "crm", "location": "ASIA"},
    {"dataset": "crm", "partition": 0},
    {"dataset": "crm", "unknown": 1},
    ["crm"],
])
def test_schema_violations_rejected(tmp_path, data) -> None:
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, data))


def test_bad_version_in_file_rejected(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, {"dataset": "crm", "version": "0.0.0"}))
