import json

import pytest

from jqlive import Engine
from frontend.web import create_app

DOC = {"users": [{"name": "ada", "age": 36}], "meta": {"count": 2}}


@pytest.fixture
def client():
    eng = Engine.from_json(json.dumps(DOC), telemetry=False, name="doc.json")
    app = create_app(eng)
    try:
        yield app.test_client()
    finally:
        eng.shutdown()


@pytest.mark.e2e
def test_health(client):
    rv = client.get("/health")
    assert rv.status_code == 200
    assert rv.get_json() == {"ok": True, "document": "doc.json"}


@pytest.mark.e2e
def test_query_ok(client):
    data = client.get("/api/query", query_string={"filter": ".meta.count"}).get_json()
    assert data == {"ok": True, "output": "2", "error": None, "kind": None}


@pytest.mark.e2e
def test_query_errors(client):
    assert client.get("/api/query").status_code == 400

    data = client.get("/api/query", query_string={"filter": ".["}).get_json()
    assert data["ok"] is False
    assert data["kind"] == "parse"
    assert data["error"]


@pytest.mark.e2e
def test_keys(client):
    data = client.get("/api/keys", query_string={"path": ".users[0]"}).get_json()
    assert data == {"ok": True, "keys": ["age", "name"], "error": None}

    data = client.get("/api/keys", query_string={"path": ".meta.count | .x"}).get_json()
    assert data["ok"] is False
    assert data["kind"] == "evaluation"


@pytest.mark.e2e
def test_suggest(client):
    data = client.get("/api/suggest", query_string={"filter": ".us"}).get_json()
    assert data["suggestions"] == ["users"]
    assert data["context"] == {"path": ".", "incomplete": "us", "start_pos": 1}


@pytest.mark.e2e
def test_telemetry_disabled(client):
    assert client.get("/api/telemetry").get_json() == {"enabled": False, "summary": None}


@pytest.mark.e2e
def test_home_page_renders(client):
    rv = client.get("/")
    assert rv.status_code == 200
    assert rv.mimetype == "text/html"
    html = rv.get_data(as_text=True)
    assert "<title>jqlive" in html
    assert "/api/suggest" in html
