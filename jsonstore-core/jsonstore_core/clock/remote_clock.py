"""Revision numbers from the warehouse's own clock.

Revisions come from ``CURRENT_TIMESTAMP()`` on the warehouse rather than the
local wall clock, so they order consistently with latest-version queries run
against the same store.

Revision format: ``YYYYMMDDHHMMSSffffff`` (UTC, microseconds) with the first
century digit removed and ``"0"`` stripped from both ends, parsed as an
integer.  Without the century digit the value fits INT64 until year (2)922.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from jsonstore_core.errors import ClockUnavailable, InvalidTimestamp, QueryTimeoutError
from jsonstore_core.store.warehouse import WarehouseClient
from jsonstore_core.util.retry import TimedOut, linear_backoff, poll_until

STANDARD_SQL_PREFIX = "#standardSQL\n"
CURRENT_TIMESTAMP_SQL = "SELECT CURRENT_TIMESTAMP() AS now"

# Poll defaults: 100 microseconds * attempt, at most 500 refreshes.
DEFAULT_BASE_DELAY = 0.0001
DEFAULT_MAX_ATTEMPTS = 500

_log = logging.getLogger("jsonstore.clock")


def revision_from_timestamp(timestamp: datetime) -> int:
    """Convert a warehouse timestamp into a revision number.

    Naive datetimes are taken as UTC.

    Raises
    ------
    InvalidTimestamp
        If the formatted value is empty or zero after trimming.
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    digits = timestamp.strftime("%Y%m%d%H%M%S%f")[1:].strip("0")
    if not digits:
        raise InvalidTimestamp(f"Integer value conversion error for timestamp {timestamp!r}")
    revision = int(digits)
    if revision == 0:
        raise InvalidTimestamp(f"Integer value conversion error for timestamp {timestamp!r}")
    return revision


class RemoteClock:
    """Polled query runner and revision source backed by a warehouse.

    Parameters
    ----------
    warehouse:
        Remote store used for ``run_query`` / ``is_complete`` / ``reload``.
    base_delay:
        Seconds multiplied by the attempt number between polls.
    max_attempts:
        Retry ceiling for one query.
    sleep:
        Blocking sleep function; tests pass a no-op.
    logger:
        Logger for clock readings.  Defaults to ``jsonstore.clock``.
    """

    def __init__(
        self,
        warehouse: WarehouseClient,
        *,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._warehouse = warehouse
        self._delay = linear_backoff(base_delay)
        self._max_attempts = max_attempts
        self._sleep = sleep
        self.logger = logger or _log

    def fetch_row(self, sql: str) -> Mapping[str, Any] | None:
        """Run *sql* as standard SQL, wait for completion, return its first row.

        Raises
        ------
        QueryTimeoutError
            If the query is not complete after ``max_attempts`` polls.
        """
        handle = self._warehouse.run_query(STANDARD_SQL_PREFIX + sql)
        result = poll_until(
            lambda: self._warehouse.is_complete(handle),
            refresh=lambda: self._warehouse.reload(handle),
            max_attempts=self._max_attempts,
            delay=self._delay,
            sleep=self._sleep,
        )
        if isinstance(result, TimedOut):
            raise QueryTimeoutError(
                f"Timeout during query after {result.attempts} polls: {sql}"
            )
        return self._warehouse.first_row(handle)

    def current_revision(self) -> int:
        """Return a fresh revision number from the warehouse clock.

        Raises
        ------
        ClockUnavailable
            If the clock query never completes.
        InvalidTimestamp
            If the query result is missing, not a timestamp, or converts to zero.
        """
        try:
            row = self.fetch_row(CURRENT_TIMESTAMP_SQL)
        except QueryTimeoutError as exc:
            raise ClockUnavailable(str(exc)) from exc

        timestamp = row.get("now") if row is not None else None
        if not isinstance(timestamp, datetime):
            raise InvalidTimestamp(f"Invalid query result for current timestamp: {timestamp!r}")

        revision = revision_from_timestamp(timestamp)
        self.logger.debug("Warehouse clock %s -> revision %d", timestamp.isoformat(), revision)
        return revision
