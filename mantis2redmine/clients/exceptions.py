"""Common exceptions for all client modules."""


class ClientError(Exception):
    """Base exception for all client errors."""


class ClientConnectionError(ClientError):
    """Error when connection to a database fails."""


class QueryExecutionError(ClientError):
    """Error when executing a query."""


class WriteFailure(ClientError):
    """Error when an insert or update against the target fails."""

    def __init__(self, message: str, table: str | None = None) -> None:
        """Initialize a write failure with the name of the affected table."""
        super().__init__(message)
        self.table = table
