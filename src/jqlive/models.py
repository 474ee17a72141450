from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .errors import QueryError, Cancelled


@dataclass(frozen=True)
class Context:
    path: str          # valid filter prefix, "." when none
    incomplete: str    # partial key being typed
    start_pos: int     # where a selected suggestion is substituted


@dataclass(frozen=True)
class Result:
    raw: str = ""                          # plain pretty-printed output
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, Cancelled)

    def lines(self) -> list[str]:
        if self.error is not None:
            return str(self.error).split("\n")
        return self.raw.split("\n")


@dataclass
class PendingSpan:
    queued_at: Optional[float] = None
    dispatched_at: Optional[float] = None
