from __future__ import annotations
import json
import threading
from typing import Any, Iterator, Protocol

import jq

from .errors import ParseError, EvaluationError


class CancelToken:
    """Cooperative cancellation flag shared between the event loop and one execution."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Evaluator(Protocol):
    # Parse + compile; raises ParseError
    def compile(self, text: str) -> Any: ...
    # Lazy stream of values; an error element terminates the stream
    def evaluate(self, program: Any, document: Any, token: CancelToken) -> Iterator[Any]: ...
    def is_error(self, value: Any) -> bool: ...


class JqEvaluator:
    """
    Evaluator backed by the jq library.

    jq raises ValueError both for bad programs and for runtime failures; the
    former become ParseError, the latter are yielded as an EvaluationError
    element so callers see a single stream contract.
    """

    def __init__(self) -> None:
        self._doc_lock = threading.Lock()
        self._doc_ref: Any = None
        self._doc_text: str | None = None

    def compile(self, text: str) -> Any:
        try:
            return jq.compile(text)
        except ValueError as exc:
            raise ParseError(f"parse error: {exc}") from exc

    def evaluate(self, program: Any, document: Any, token: CancelToken) -> Iterator[Any]:
        if token.cancelled:
            return
        results = iter(program.input_text(self._document_text(document)))
        while not token.cancelled:
            try:
                value = next(results)
            except StopIteration:
                return
            except ValueError as exc:
                yield EvaluationError(str(exc))
                return
            yield value

    def is_error(self, value: Any) -> bool:
        return isinstance(value, EvaluationError)

    def _document_text(self, document: Any) -> str:
        # the document is immutable for the session: serialize it once
        with self._doc_lock:
            if self._doc_text is None or self._doc_ref is not document:
                self._doc_text = json.dumps(document)
                self._doc_ref = document
            return self._doc_text


def is_valid_filter(evaluator: Evaluator, text: str) -> bool:
    if text == "" or text == ".":
        return True
    try:
        evaluator.compile(text)
    except ParseError:
        return False
    return True
