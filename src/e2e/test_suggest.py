import pytest

from jqlive.cache import QueryCache
from jqlive.evaluator import JqEvaluator
from jqlive.models import Context
from jqlive.suggest import AutocompleteService, filter_keys_by_prefix, match_prefix

DOC = {
    "users": [{"name": "ada", "age": 36, "Nick": "a"}, {"name": "bob"}],
    "meta": {"count": 2},
}


@pytest.fixture
def svc():
    return AutocompleteService(QueryCache(JqEvaluator(), DOC))


def test_root_suggestions(svc):
    keys, ctx = svc.suggest(".")
    assert keys == ["meta", "users"]
    assert ctx == Context(".", "", 1)


def test_prefix_is_case_insensitive(svc):
    assert svc.suggest(".us")[0] == ["users"]
    assert svc.suggest(".US")[0] == ["users"]
    assert svc.suggest(".users[0].n")[0] == ["Nick", "name"]


def test_suggestions_after_index(svc):
    keys, ctx = svc.suggest(".users[0].")
    assert keys == ["Nick", "age", "name"]
    assert ctx.path == ".users[0]"


def test_no_match_gives_empty_list(svc):
    assert svc.suggest(".zzz")[0] == []


def test_pipe_resolves_against_left_output(svc):
    keys, ctx = svc.suggest(".meta | .")
    assert keys == ["count"]
    assert ctx == Context(".", "", 9)


def test_pipe_after_iterator_uses_first_element(svc):
    keys, _ = svc.suggest(".users[] | .n")
    assert keys == ["Nick", "name"]


def test_pipe_with_right_path(svc):
    keys, ctx = svc.suggest(".users | .[0].a")
    assert ctx.path == ".[0]"
    assert keys == ["age"]


def test_errors_yield_no_suggestions(svc):
    keys, ctx = svc.suggest("1 | .a.")
    assert keys == []
    assert ctx.path == ".a"


def test_apply_replaces_incomplete_token():
    ctx = Context(".", "ba", 8)
    assert AutocompleteService.apply(".foo | .ba", ctx, "bar") == ".foo | .bar"
    assert AutocompleteService.apply(".", Context(".", "", 1), "users") == ".users"


def test_validity_checks_are_memoised(svc):
    svc.parse_context(".a.b.c")
    svc.parse_context(".a.b.c")
    assert svc._valid_memo[".a.b"] is True


def test_prefix_helpers():
    assert match_prefix(["Alpha", "beta", "alps"], "AL") == ["Alpha", "alps"]
    keys = ["b", "a"]
    assert filter_keys_by_prefix(keys, "") is keys
    assert filter_keys_by_prefix(["b", "ab", "Ax"], "a") == ["ab", "Ax"]


def test_unexpected_lookup_failure_yields_no_suggestions(svc, monkeypatch):
    def broken(path):
        raise RuntimeError("index exploded")

    monkeypatch.setattr(svc.cache, "keys_at", broken)
    keys, ctx = svc.suggest(".meta.")
    assert keys == []
    assert ctx.path == ".meta"
