from __future__ import annotations


class QueryError(Exception):
    """Base class for every recoverable condition a query can end in."""
    kind = "error"


class ParseError(QueryError):
    """Malformed filter text. Never cached; retry once the text changes."""
    kind = "parse"


class EvaluationError(QueryError):
    """An error value surfaced mid-stream from the evaluator."""
    kind = "evaluation"


class Cancelled(QueryError):
    """The execution observed its cancel token. Never shown to the user."""
    kind = "cancelled"

    def __init__(self, message: str = "query cancelled") -> None:
        super().__init__(message)
