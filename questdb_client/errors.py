from typing import Any, List, Optional, Sequence


def format_path(path: Sequence[Any]) -> str:
    """Render a coding path as a dotted string for error messages."""
    return ".".join(str(segment) for segment in path)


class QuestDBError(Exception):
    """Root of every error raised by this library."""


class ConfigurationError(QuestDBError):
    pass


class MissingResponseData(QuestDBError):
    def __init__(self, message: str = "Transport returned an empty response body"):
        super().__init__(message)


class InvalidJSON(QuestDBError, ValueError):
    pass


class TransportError(QuestDBError):
    pass


class EncodingFailure(QuestDBError, ValueError):
    """A leaf value has no valid percent-encoded text form."""

    def __init__(self, value: Any, path: Sequence[Any], reason: Optional[str] = None):
        self.value = value
        self.path: List[Any] = list(path)
        self.reason = reason or "unable to add percent encoding"
        super().__init__(f"Invalid value at '{format_path(self.path)}': {value!r} ({self.reason})")


class DecodingFailure(QuestDBError, ValueError):
    """A JSON position matched none of the dynamic value shapes."""

    def __init__(self, path: Sequence[Any], reason: str):
        self.path: List[Any] = list(path)
        self.reason = reason
        super().__init__(f"Cannot decode value at '{format_path(self.path)}': {reason}")


class RecordMaterializeError(QuestDBError):
    """A row could not be turned into the requested record type.

    Raised by row accessors and record builders; the projector catches it
    and drops the row.
    """

    def __init__(self, column: Optional[str], reason: str):
        self.column = column
        self.reason = reason
        where = f"column '{column}'" if column is not None else "row"
        super().__init__(f"Cannot materialize {where}: {reason}")


class ErrorResponse(QuestDBError):
    """Error document returned by the server for a failed query."""

    def __init__(self, query: str, error: str, position: int):
        self.query = query
        self.error = error
        self.position = position
        super().__init__(f"{error} (position {position}) in query: {query}")
