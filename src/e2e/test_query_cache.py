import threading
import time

import pytest

import jqlive.config as CFG
from jqlive.cache import QueryCache, parse_simple_path, PathToken, KEY, INDEX, ITER
from jqlive.errors import Cancelled, EvaluationError, ParseError
from jqlive.evaluator import CancelToken, JqEvaluator

DOC = {
    "users": [{"name": "ada", "age": 36}, {"name": "bob"}],
    "meta": {"count": 2},
}


class CountingEvaluator(JqEvaluator):
    """Real jq, but counts compile calls."""
    def __init__(self):
        super().__init__()
        self.compiles = 0

    def compile(self, text):
        self.compiles += 1
        return super().compile(text)


class ScriptedEvaluator:
    """
    Evaluator double:
      - compile("!...") raises ParseError, anything else returns the text
      - evaluate yields from streams[program]; callables in a stream are
        invoked with the token instead of being yielded
    """
    def __init__(self, streams=None, delay=0.0):
        self.streams = streams or {}
        self.delay = delay
        self.compiles = 0

    def compile(self, text):
        self.compiles += 1
        if text.startswith("!"):
            raise ParseError(f"parse error: {text}")
        if self.delay:
            time.sleep(self.delay)
        return object() if text == "fresh" else text

    def evaluate(self, program, document, token):
        for item in self.streams.get(program, []):
            if callable(item):
                item(token)
                continue
            yield item

    def is_error(self, value):
        return isinstance(value, Exception)


@pytest.fixture
def cache():
    return QueryCache(JqEvaluator(), DOC)


# ------------- execute -------------

def test_execute_formats_every_value(cache):
    assert cache.execute(".meta.count").raw == "2"
    assert cache.execute(".users[].name").raw == '"ada"\n"bob"'
    assert cache.execute(".meta").raw == '{\n  "count": 2\n}'


def test_execute_sorts_object_keys(cache):
    raw = cache.execute(".users[0]").raw
    assert raw.index('"age"') < raw.index('"name"')


def test_parse_error_is_reported_and_not_cached(cache):
    res = cache.execute(".[")
    assert not res.ok
    assert isinstance(res.error, ParseError)
    assert res.error.kind == "parse"
    assert cache.program_count() == 0

    # retrying compiles again and still fails
    assert isinstance(cache.execute(".[").error, ParseError)
    assert cache.program_count() == 0


def test_evaluation_error_ends_the_stream(cache):
    res = cache.execute(".meta.count | .x")
    assert isinstance(res.error, EvaluationError)
    assert res.raw == ""
    assert res.lines() == str(res.error).split("\n")


def test_compile_cache_is_reused():
    ev = CountingEvaluator()
    c = QueryCache(ev, DOC)
    first = c.execute(".users | length")
    second = c.execute(".users | length")
    assert first == second
    assert first.raw == "2"
    assert ev.compiles == 1
    assert c.program_count() == 1


def test_concurrent_compiles_keep_a_single_program():
    ev = ScriptedEvaluator(delay=0.01)
    c = QueryCache(ev, DOC)
    n = 8
    barrier = threading.Barrier(n)
    got = []

    def worker():
        barrier.wait(timeout=5)
        got.append(c.compiled("fresh"))

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(got) == n
    winner = c.compiled("fresh")
    assert all(p is winner for p in got)
    assert c.program_count() == 1


def test_cancelled_before_start():
    token = CancelToken()
    token.cancel()
    res = QueryCache(ScriptedEvaluator({"x": [1]}), DOC).execute("x", token)
    assert res.cancelled
    assert isinstance(res.error, Cancelled)


def test_cancelled_between_values():
    ev = ScriptedEvaluator({"x": [1, lambda tok: tok.cancel(), 2, 3]})
    res = QueryCache(ev, DOC).execute("x", CancelToken())
    assert res.cancelled
    assert res.raw == ""


def test_scripted_error_element_becomes_the_result():
    ev = ScriptedEvaluator({"x": [1, EvaluationError("boom"), 2]})
    res = QueryCache(ev, DOC).execute("x")
    assert str(res.error) == "boom"


# ------------- keys -------------

@pytest.mark.parametrize(
    "path, keys",
    [
        ("", ["meta", "users"]),
        (".", ["meta", "users"]),
        (".users", ["[0]", "[1]"]),
        (".users[0]", ["age", "name"]),
        (".users[]", ["age", "name"]),
        (".users[1]", ["name"]),
        (".users[9]", []),
        (".meta.count", []),
        (".nope", []),
    ],
)
def test_keys_at_simple_paths(cache, path, keys):
    assert cache.keys_at(path) == keys


def test_keys_at_falls_back_to_evaluator(cache):
    assert cache.keys_at(".users | map(.name)") == ["[0]", "[1]"]
    assert cache.keys_at(".users[] | select(.age)") == ["age", "name"]


def test_fast_path_agrees_with_evaluator(cache):
    for path in (".", ".users", ".users[0]", ".users[]", ".meta", ".meta.count", ".nope"):
        assert parse_simple_path(path) is not None
        assert cache.keys_at(path) == cache._keys_via_evaluator(path), path


def test_keys_at_errors_propagate(cache):
    with pytest.raises(ParseError):
        cache.keys_at(".[")
    with pytest.raises(EvaluationError):
        cache.keys_at(".meta.count | .x")
    assert cache.keys_count() == 0


def test_keys_are_handed_out_as_copies(cache):
    keys = cache.keys_at(".")
    keys.append("intruder")
    assert cache.keys_at(".") == ["meta", "users"]
    assert cache.keys_count() == 1


def test_array_hints_are_capped():
    c = QueryCache(JqEvaluator(), list(range(1000)))
    keys = c.keys_at(".")
    assert len(keys) == CFG.MAX_ARRAY_HINTS
    assert keys[0] == "[0]"
    assert keys[-1] == f"[{CFG.MAX_ARRAY_HINTS - 1}]"


def test_simple_path_grammar():
    assert parse_simple_path(".") == []
    assert parse_simple_path(".a[2][]") == [PathToken(KEY, key="a"), PathToken(INDEX, index=2), PathToken(ITER)]
    for path in (".a | .b", "..", ".a.", '."quoted"', "keys", ".a[-1]", ".1a", ".a b"):
        assert parse_simple_path(path) is None, path


# ------------- real jq evaluator -------------

def test_jq_stream_stops_when_token_is_cancelled():
    ev = JqEvaluator()
    token = CancelToken()
    stream = ev.evaluate(ev.compile(".[]"), [1, 2, 3, 4], token)
    assert next(stream) == 1
    token.cancel()
    assert list(stream) == []


def test_jq_stream_is_empty_for_a_cancelled_token():
    ev = JqEvaluator()
    token = CancelToken()
    token.cancel()
    assert list(ev.evaluate(ev.compile("."), DOC, token)) == []


def test_jq_runtime_error_is_yielded_and_ends_the_stream():
    ev = JqEvaluator()
    values = list(ev.evaluate(ev.compile(".[] | .x"), [{"x": 1}, 5, {"x": 2}], CancelToken()))
    assert values[0] == 1
    assert len(values) == 2
    assert ev.is_error(values[1])


class _CancelAfter(CancelToken):
    """Token that flips to cancelled after `n` polls."""
    def __init__(self, n):
        super().__init__()
        self.polls = n

    @property
    def cancelled(self):
        self.polls -= 1
        if self.polls < 0:
            self.cancel()
        return super().cancelled


def test_execute_cancelled_mid_stream_with_jq(cache):
    res = cache.execute("range(100000)", _CancelAfter(5))
    assert res.cancelled
    assert res.raw == ""
    assert cache.execute("range(3)").raw == "0\n1\n2"
