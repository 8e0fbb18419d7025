import base64
import io
import os
import sys

import pytest
from fastapi.testclient import TestClient
from PIL import Image

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.main import app
from app.routers import matches
from app.sessions import MatchSessionStore

BASE = "/api/v0/matches"
SETUP = {
    "nameA": "Alpha",
    "rosterA": "Al\nAnn",
    "nameB": "Beta",
    "rosterB": ["Bo"],
    "startingTeam": "A",
}


@pytest.fixture()
def client_and_events(monkeypatch):
    store = MatchSessionStore()
    published = []

    async def fake_broadcast(mid: str, message: dict) -> None:
        published.append((mid, message))

    monkeypatch.setattr(matches, "broadcast", fake_broadcast)
    app.dependency_overrides[matches.get_store] = lambda: store

    with TestClient(app) as client:
        yield client, published

    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_events):
    return client_and_events[0]


def _create(client, **overrides):
    resp = client.post(BASE, json={**SETUP, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _throw(client, mid, points):
    return client.post(f"{BASE}/{mid}/throws", json={"points": points})


def test_create_match(client_and_events):
    client, published = client_and_events
    data = _create(client, startingTeam="b")
    state = data["state"]
    assert state["status"] == "PLAYING"
    assert state["currentTurn"] == "B"
    assert state["startingTeam"] == "B"
    assert state["round"] == 1
    assert state["teamA"]["roster"] == ["Al", "Ann"]
    assert state["teamA"]["captain"] == "Al"
    assert state["teamB"]["currentThrower"] == "Bo"
    assert state["rules"] == {
        "targetScore": 50,
        "bustResetTo": 25,
        "maxFaults": 3,
        "maxPoints": 12,
    }
    assert data["canUndo"] is False
    assert data["selectedPoints"] is None
    assert published == [(data["id"], {"event": "START", "summary": data["summary"]})]


def test_create_match_with_placeholders(client):
    data = _create(client, nameA="  ", rosterA="", rosterB=None)
    assert data["state"]["teamA"]["name"] == "Team A"
    assert data["state"]["teamA"]["roster"] == ["Captain A"]
    assert data["state"]["teamB"]["roster"] == ["Captain B"]


def test_create_match_rejects_duplicate_roster_names(client):
    resp = client.post(BASE, json={**SETUP, "rosterA": ["Al", "al"]})
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "match_invalid_setup"


def test_create_match_rejects_invalid_rules(client):
    resp = client.post(BASE, json={**SETUP, "rules": {"targetScore": 30, "bustResetTo": 40}})
    assert resp.status_code == 422


def test_create_match_with_custom_rules(client):
    data = _create(client, rules={"targetScore": 30, "bustResetTo": 15})
    mid = data["id"]
    for points in (12, 1, 12, 1):
        assert _throw(client, mid, points).status_code == 200
    resp = _throw(client, mid, 12)
    team_a = resp.json()["state"]["teamA"]
    assert team_a["score"] == 15
    assert resp.json()["state"]["history"][-1]["note"] == "Bust: 30 → 15"


def test_select_and_confirm(client_and_events):
    client, published = client_and_events
    mid = _create(client)["id"]

    resp = client.put(f"{BASE}/{mid}/selection", json={"points": 0})
    assert resp.status_code == 200
    assert resp.json() == {"selectedPoints": 0, "selectedLabel": "X"}
    assert client.get(f"{BASE}/{mid}").json()["selectedPoints"] == 0

    resp = client.put(f"{BASE}/{mid}/selection", json={"points": 7})
    assert resp.json()["selectedPoints"] == 7

    resp = client.post(f"{BASE}/{mid}/confirm")
    assert resp.status_code == 200
    data = resp.json()
    assert data["state"]["teamA"]["score"] == 7
    assert data["state"]["currentTurn"] == "B"
    assert data["selectedPoints"] is None
    assert data["canUndo"] is True
    assert published[-1][1]["event"] == "THROW"
    assert published[-1][1]["summary"]["lastThrow"]["points"] == 7


def test_clear_selection(client):
    mid = _create(client)["id"]
    client.put(f"{BASE}/{mid}/selection", json={"points": 4})
    resp = client.delete(f"{BASE}/{mid}/selection")
    assert resp.status_code == 200
    assert resp.json()["selectedPoints"] is None
    resp = client.post(f"{BASE}/{mid}/confirm")
    assert resp.status_code == 409


def test_confirm_without_selection(client):
    mid = _create(client)["id"]
    resp = client.post(f"{BASE}/{mid}/confirm")
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "selection_missing"
    assert resp.headers["content-type"].startswith("application/problem+json")


@pytest.mark.parametrize("points", [-1, 13])
def test_out_of_range_points(client, points):
    mid = _create(client)["id"]
    resp = client.put(f"{BASE}/{mid}/selection", json={"points": points})
    assert resp.status_code == 400
    assert resp.json()["code"] == "throw_invalid"
    resp = _throw(client, mid, points)
    assert resp.status_code == 400
    assert client.get(f"{BASE}/{mid}").json()["state"]["history"] == []


def test_boolean_points_rejected(client):
    mid = _create(client)["id"]
    resp = _throw(client, mid, True)
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "request_invalid"
    assert resp.json()["detail"].startswith("points")


def test_win_then_undo(client_and_events):
    client, published = client_and_events
    mid = _create(client)["id"]
    for points in (12, 1, 12, 1, 12, 1, 12, 1):
        assert _throw(client, mid, points).status_code == 200

    resp = _throw(client, mid, 2)
    state = resp.json()["state"]
    assert state["status"] == "FINISHED"
    assert state["winnerId"] == "A"
    assert state["winReason"] == "Reached exactly 50"
    assert state["round"] == 5

    resp = _throw(client, mid, 3)
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_not_playing"
    resp = client.put(f"{BASE}/{mid}/selection", json={"points": 3})
    assert resp.status_code == 409

    resp = client.post(f"{BASE}/{mid}/undo")
    assert resp.status_code == 200
    state = resp.json()["state"]
    assert state["status"] == "PLAYING"
    assert state["winnerId"] is None
    assert state["teamA"]["score"] == 48
    assert state["currentTurn"] == "A"
    assert published[-1][1]["event"] == "UNDO"


def test_undo_with_empty_history_is_noop(client_and_events):
    client, published = client_and_events
    data = _create(client)
    resp = client.post(f"{BASE}/{data['id']}/undo")
    assert resp.status_code == 200
    assert resp.json()["state"] == data["state"]
    assert [m["event"] for _, m in published] == ["START"]


def test_history_is_newest_first(client):
    mid = _create(client)["id"]
    for points in (10, 0, 5):
        _throw(client, mid, points)
    resp = client.get(f"{BASE}/{mid}/history")
    assert resp.status_code == 200
    rows = resp.json()
    assert [row["id"] for row in rows] == [3, 2, 1]
    assert rows[1]["pointsLabel"] == "X"
    assert rows[1]["note"] == "Miss"
    assert rows[0]["throwerName"] == "Ann"
    assert rows[0]["snapshot"] is None
    assert rows[2]["teamName"] == "Alpha"

    client.post(f"{BASE}/{mid}/undo")
    rows = client.get(f"{BASE}/{mid}/history").json()
    assert [row["id"] for row in rows] == [2, 1]


def test_report(client):
    mid = _create(client)["id"]
    for points in (0, 5, 0, 5, 0):
        _throw(client, mid, points)
    resp = client.get(f"{BASE}/{mid}/report")
    assert resp.status_code == 200
    report = resp.json()
    assert report["status"] == "FINISHED"
    assert report["winnerId"] == "B"
    assert report["winnerName"] == "Beta"
    assert report["teams"]["A"]["isEliminated"] is True
    assert [row["round"] for row in report["rounds"]] == [1, 2, 3]
    assert report["rounds"][2]["B"] is None
    assert report["rounds"][0]["A"]["pointsLabel"] == "X"


def test_reset_and_restart(client):
    mid = _create(client)["id"]
    _throw(client, mid, 10)

    resp = client.post(f"{BASE}/{mid}/reset")
    assert resp.status_code == 200
    state = resp.json()["state"]
    assert state["status"] == "SETUP"
    assert state["history"] == []
    assert state["teamA"]["name"] == "Alpha"
    assert _throw(client, mid, 3).status_code == 409

    resp = client.post(
        f"{BASE}/{mid}/restart",
        json={"nameA": "Gamma", "rosterA": ["Gus"], "nameB": "Delta", "rosterB": ["Dee"], "startingTeam": "B"},
    )
    assert resp.status_code == 200
    state = resp.json()["state"]
    assert state["status"] == "PLAYING"
    assert state["teamA"]["name"] == "Gamma"
    assert state["currentTurn"] == "B"


def test_unknown_match(client):
    resp = client.get(f"{BASE}/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["code"] == "match_not_found"
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert _throw(client, "does-not-exist", 3).status_code == 404


def test_delete_match(client):
    mid = _create(client)["id"]
    assert client.delete(f"{BASE}/{mid}").status_code == 204
    assert client.get(f"{BASE}/{mid}").status_code == 404


def _png_data_url() -> str:
    buf = io.BytesIO()
    Image.new("RGBA", (20, 10)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def test_signatures(client):
    mid = _create(client)["id"]
    data_url = _png_data_url()

    resp = client.put(f"{BASE}/{mid}/signatures/referee", json={"dataUrl": data_url})
    assert resp.status_code == 204
    assert client.get(f"{BASE}/{mid}").json()["signatures"] == ["referee"]
    report = client.get(f"{BASE}/{mid}/report").json()
    assert report["signatures"] == {"referee": data_url}

    resp = client.delete(f"{BASE}/{mid}/signatures/referee")
    assert resp.status_code == 204
    assert client.get(f"{BASE}/{mid}").json()["signatures"] == []


def test_signature_validation(client):
    mid = _create(client)["id"]
    resp = client.put(f"{BASE}/{mid}/signatures/coach", json={"dataUrl": _png_data_url()})
    assert resp.status_code == 404
    assert resp.json()["code"] == "signature_role_unknown"

    resp = client.put(
        f"{BASE}/{mid}/signatures/captainA",
        json={"dataUrl": "data:text/plain;base64,aGVsbG8="},
    )
    assert resp.status_code == 415
    assert resp.json()["code"] == "signature_media_type"


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
    body = client.get("/api/healthz").json()
    assert body["status"] == "ok"
    assert isinstance(body["activeMatches"], int)
