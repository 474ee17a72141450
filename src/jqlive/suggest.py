from __future__ import annotations
import logging
from typing import Callable, List, Optional, Tuple

from .cache import QueryCache
from .context import parse_context
from .errors import QueryError
from .evaluator import is_valid_filter
from .models import Context

log = logging.getLogger(__name__)


class AutocompleteService:
    """Key suggestions for the filter being typed, resolved through a QueryCache."""

    def __init__(self, cache: QueryCache, is_valid: Optional[Callable[[str], bool]] = None) -> None:
        self.cache = cache
        self._is_valid = is_valid or self._compiles
        self._valid_memo: dict[str, bool] = {}

    def parse_context(self, filter_text: str) -> Context:
        return parse_context(filter_text, self._is_valid)

    def suggest(self, filter_text: str) -> Tuple[List[str], Context]:
        ctx = self.parse_context(filter_text)

        keys: Optional[List[str]] = None
        try:
            pipe = filter_text.rfind("|")
            if pipe >= 0:
                left = filter_text[:pipe].strip()
                if left:
                    keys = self.resolve_keys_after_pipe(left, ctx.path)
            if keys is None:
                keys = self.cache.keys_at(ctx.path)
        except QueryError as exc:
            log.debug("no suggestions for %r: %s", filter_text, exc)
            return [], ctx
        except Exception:
            log.exception("suggestion lookup failed for %r", filter_text)
            return [], ctx

        return sorted(match_prefix(keys, ctx.incomplete)), ctx

    def resolve_keys_after_pipe(self, left: str, right_path: str) -> List[str]:
        """Keys available to the right of a pipe, from the left side's output."""
        has_right = right_path not in ("", ".")

        # an iterator on the left: resolve against its first element
        if left.endswith("[]"):
            probe = left[:-2] + "[0]"
            if has_right:
                probe = f"{probe} | {right_path}"
            try:
                keys = self.cache.keys_at(probe)
            except QueryError:
                keys = []
            if keys:
                return keys

        path = f"{left} | {right_path}" if has_right else left
        return self.cache.keys_at(path)

    @staticmethod
    def apply(filter_text: str, ctx: Context, selected: str) -> str:
        return filter_text[:ctx.start_pos] + selected

    def _compiles(self, text: str) -> bool:
        ok = self._valid_memo.get(text)
        if ok is None:
            ok = is_valid_filter(self.cache.evaluator, text)
            self._valid_memo[text] = ok
        return ok


def match_prefix(keys: List[str], incomplete: str) -> List[str]:
    prefix = incomplete.lower()
    return [k for k in keys if k.lower().startswith(prefix)]


def filter_keys_by_prefix(keys: List[str], incomplete: str) -> List[str]:
    """Panel filter: keeps input order, an empty prefix returns the list as is."""
    if not incomplete or not keys:
        return keys
    return match_prefix(keys, incomplete)
