from __future__ import annotations
import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import config as CFG
from .errors import QueryError, EvaluationError, Cancelled
from .evaluator import CancelToken, Evaluator
from .models import Result

log = logging.getLogger(__name__)

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INDEX = re.compile(r"\[(\d*)\]")

# token kinds for the restricted path grammar
KEY, INDEX, ITER = "key", "index", "iter"


@dataclass(frozen=True)
class PathToken:
    kind: str
    key: str = ""
    index: int = 0


class QueryCache:
    """
    Session-scoped cache in front of the evaluator.

    Holds two maps, both insert-if-absent and never updated in place:
      * compiled programs keyed by exact filter text
      * key lists keyed by path text (stored as tuples, handed out as lists)

    Reads are plain dict lookups; writers serialize on one lock.
    """

    def __init__(self, evaluator: Evaluator, document: Any) -> None:
        self.evaluator = evaluator
        self.document = document
        self._lock = threading.Lock()
        self._programs: Dict[str, Any] = {}
        self._keys: Dict[str, Tuple[str, ...]] = {}

    # ------------- execute -------------

    def execute(self, filter_text: str, token: Optional[CancelToken] = None) -> Result:
        token = token or CancelToken()
        if token.cancelled:
            return Result(error=Cancelled())
        try:
            program = self.compiled(filter_text)
        except QueryError as exc:
            return Result(error=exc)

        chunks: List[str] = []
        for value in self.evaluator.evaluate(program, self.document, token):
            if token.cancelled:
                return Result(error=Cancelled())
            if self.evaluator.is_error(value):
                return Result(error=_as_query_error(value))
            chunks.append(format_value(value))
        if token.cancelled:
            return Result(error=Cancelled())
        return Result(raw="\n".join(chunks))

    def compiled(self, filter_text: str) -> Any:
        program = self._programs.get(filter_text)
        if program is not None:
            return program

        log.debug("compile cache miss: %r", filter_text)
        program = self.evaluator.compile(filter_text)  # ParseError propagates, nothing cached
        with self._lock:
            # first writer wins; a racing compile is used once and dropped
            return self._programs.setdefault(filter_text, program)

    # ------------- keys -------------

    def keys_at(self, path: str) -> List[str]:
        if path == "":
            path = "."

        cached = self._keys.get(path)
        if cached is not None:
            return list(cached)

        tokens = parse_simple_path(path)
        if tokens is not None:
            keys = keys_at_simple_path(self.document, tokens)
        else:
            keys = self._keys_via_evaluator(path)
        return list(self._store_keys(path, keys))

    def _keys_via_evaluator(self, path: str) -> List[str]:
        program = self.compiled(path)
        for value in self.evaluator.evaluate(program, self.document, CancelToken()):
            if self.evaluator.is_error(value):
                raise _as_query_error(value)
            return extract_keys(value)
        return []

    def _store_keys(self, path: str, keys: Iterable[str]) -> Tuple[str, ...]:
        snapshot = tuple(keys)
        with self._lock:
            return self._keys.setdefault(path, snapshot)

    # ------------- introspection -------------

    def program_count(self) -> int:
        return len(self._programs)

    def keys_count(self) -> int:
        return len(self._keys)


# ---- helpers ----

def format_value(value: Any) -> str:
    return json.dumps(value, indent=CFG.INDENT, sort_keys=CFG.SORT_KEYS, ensure_ascii=False)


def extract_keys(value: Any) -> List[str]:
    if isinstance(value, dict):
        return sorted(value.keys())
    if isinstance(value, list):
        n = min(len(value), CFG.MAX_ARRAY_HINTS)
        return [f"[{i}]" for i in range(n)]
    return []


def parse_simple_path(path: str) -> Optional[List[PathToken]]:
    """
    Tokenize `.a.b[0][]`-style paths. Returns None for anything outside the
    restricted grammar (pipes, functions, filters, quoted keys, ...).
    """
    if path == "" or path == ".":
        return []
    if not path.startswith("."):
        return None

    tokens: List[PathToken] = []
    i = 1
    after_dot = True
    while i < len(path):
        ch = path[i]
        if ch == ".":
            # ".." is recursion and a trailing "." is incomplete: not simple
            if after_dot or i + 1 >= len(path):
                return None
            after_dot = True
            i += 1
            continue
        if ch == "[":
            after_dot = False
            m = _INDEX.match(path, i)
            if not m:
                return None
            if m.group(1) == "":
                tokens.append(PathToken(ITER))
            else:
                tokens.append(PathToken(INDEX, index=int(m.group(1))))
            i = m.end()
            continue
        m = _IDENT.match(path, i)
        if not m or not after_dot:
            return None
        after_dot = False
        tokens.append(PathToken(KEY, key=m.group(0)))
        i = m.end()
    return tokens


def keys_at_simple_path(document: Any, tokens: List[PathToken]) -> List[str]:
    current = document
    for tok in tokens:
        if tok.kind == KEY:
            if not isinstance(current, dict):
                return []
            current = current.get(tok.key)
        elif tok.kind == INDEX:
            if not isinstance(current, list) or tok.index >= len(current):
                return []
            current = current[tok.index]
        else:
            if not isinstance(current, list) or not current:
                return []
            current = current[0]
    return extract_keys(current)


def _as_query_error(value: Any) -> QueryError:
    if isinstance(value, QueryError):
        return value
    return EvaluationError(str(value))
