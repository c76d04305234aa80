"""Exception hierarchy shared by every jsonstore component.

Local validation errors are programming-contract violations and fail fast at
the setter call.  Remote errors surface synchronously from ``flush()`` and
``fetch_max_json_value()``; nothing is retried internally.
"""


class ConfigurationError(ValueError):
    """Raised for an invalid location, partition, version, encoder or config file."""


class PayloadTypeError(TypeError):
    """Raised when a payload cannot be serialised as a JSON object."""


class SessionNotStartedError(RuntimeError):
    """Raised when buffered records are flushed before ``start()`` named a dataset."""


class QueryTimeoutError(RuntimeError):
    """Raised when a polled warehouse query does not complete within the retry ceiling."""


class ClockUnavailable(QueryTimeoutError):
    """Raised when the warehouse clock query never completes."""


class InvalidTimestamp(ValueError):
    """Raised when the warehouse clock returns a value that cannot become a revision."""


class CommitFailure(RuntimeError):
    """Raised when a bulk insert reports one or more failed rows.

    Attributes
    ----------
    table:
        Physical table name whose bulk insert failed.
    failed_rows:
        The :class:`~jsonstore_core.store.warehouse.FailedRow` entries reported
        by the warehouse.
    """

    def __init__(self, table: str, failed_rows: list) -> None:
        self.table = table
        self.failed_rows = list(failed_rows)
        super().__init__(
            f"Error while inserting data into {table!r} "
            f"({len(self.failed_rows)} failed row(s)):\n" + "\n".join(self.reasons)
        )

    @property
    def reasons(self) -> list[str]:
        """Flat list of ``"reason: message"`` strings, one per row error."""
        return [
            f"{err.reason}: {err.message}"
            for row in self.failed_rows
            for err in row.errors
        ]
