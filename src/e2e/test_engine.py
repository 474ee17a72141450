import json

import pytest

from jqlive import Engine
from jqlive.render import ANSI_RED, visible_width

DOC = {
    "users": [{"name": "ada", "age": 36}, {"name": "bob"}],
    "meta": {"count": 2},
}


@pytest.fixture
def eng():
    e = Engine.from_json(json.dumps(DOC), debounce=0.001, telemetry=True, name="doc.json")
    try:
        yield e
    finally:
        e.shutdown()


@pytest.mark.e2e
def test_start_runs_identity_and_fetches_root_keys(eng):
    eng.start()
    assert eng.settle()
    assert eng.result.ok
    assert json.loads(eng.result.raw) == DOC
    assert eng.keys_path == "."
    assert eng.available_keys == ["meta", "users"]


@pytest.mark.e2e
def test_run_returns_committed_result(eng):
    res = eng.run(".meta.count")
    assert res.raw == "2"
    assert eng.lines == ["2"]
    assert not eng.running


@pytest.mark.e2e
def test_typing_is_debounced_and_keys_follow_context(eng):
    for text in (".u", ".us", ".users[0].", ".users[0].n"):
        eng.set_filter(text)
    assert eng.settle()
    assert eng.result.raw == "null"
    assert eng.keys_path == ".users[0]"
    assert eng.available_keys == ["age", "name"]
    assert eng.panel_keys() == ["name"]


@pytest.mark.e2e
def test_tab_after_index_drills_into_element(eng):
    eng.set_filter(".users[0]")
    opts = eng.tab()
    assert eng.filter == ".users[0]."
    assert opts == ["age", "name"]

    assert eng.cycle_suggestion(1) == "name"
    assert eng.accept_suggestion() == ".users[0].name"
    assert eng.suggestions == []
    assert eng.settle()
    assert eng.result.raw == '"ada"'


@pytest.mark.e2e
def test_tab_on_exact_key_descends(eng):
    eng.set_filter(".meta")
    assert eng.tab() == ["count"]
    assert eng.filter == ".meta."
    eng.cancel_suggestions()
    assert eng.mode == "normal"


@pytest.mark.e2e
def test_parse_error_is_displayed_in_red(eng):
    res = eng.run(".[")
    assert not res.ok
    assert res.error.kind == "parse"
    rows = eng.visible_lines(30, 2)
    assert rows[0].startswith(ANSI_RED)


@pytest.mark.e2e
def test_commit_records_history(eng):
    eng.run(".meta")
    assert eng.commit() == '{\n  "count": 2\n}'
    eng.run(".[")
    assert eng.commit() is None
    assert eng.history.items() == [".meta"]

    eng.select_history(".meta.count")
    assert eng.settle()
    assert eng.result.raw == "2"


@pytest.mark.e2e
def test_vertical_scroll_is_clamped(eng):
    eng.run(".")
    n = len(eng.lines)
    eng.scroll(1000)
    assert eng.y_offset == n - 1
    eng.scroll(-1000)
    assert eng.y_offset == 0

    eng.scroll(5)
    eng.run(".meta.count")
    assert eng.y_offset == 0


@pytest.mark.e2e
def test_horizontal_scroll_is_clamped():
    e = Engine.from_json(json.dumps({"s": "x" * 200}), debounce=0.001)
    try:
        e.run(".")
        e.resize(40)
        e.end()
        assert e.x_offset == e.max_line_width - 40
        assert all(visible_width(r) == 40 for r in e.visible_lines(40, 3))
        e.scroll_horizontal(-10_000)
        assert e.x_offset == 0
        e.scroll_horizontal(10_000)
        assert e.x_offset == e.max_line_width - 40
        e.home()
        assert e.x_offset == 0
    finally:
        e.shutdown()


@pytest.mark.e2e
def test_telemetry_summary_after_runs(eng):
    eng.run(".")
    eng.run(".meta")
    summary = eng.telemetry_summary()
    assert summary.startswith("telemetry keypress->frame samples=2")


@pytest.mark.e2e
def test_settle_survives_a_broken_key_lookup(eng):
    def broken(path):
        raise RuntimeError("index exploded")

    eng.orchestrator._keys_at = broken
    eng.set_filter(".meta.")
    assert eng.settle()
    assert eng.keys_path == ".meta"
    assert eng.available_keys == []
