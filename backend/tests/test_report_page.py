import os
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.routers import matches
from app.routes import report
from app.scoring import molkky
from app.sessions import MatchSessionStore


@pytest.fixture()
def page_client():
    store = MatchSessionStore()
    app = FastAPI()
    app.include_router(report.router)
    app.dependency_overrides[matches.get_store] = lambda: store
    with TestClient(app) as client:
        yield client, store


async def _start(store, *points):
    state = molkky.start_match("Alpha", ["Al", "Ann"], "Beta", ["Bo"], "A")
    for p in points:
        state = molkky.apply_throw(state, p)
    return await store.create(state)


def test_report_page_renders_score_sheet(page_client):
    client, store = page_client
    session = client.portal.call(_start, store, 0, 5, 0, 5, 0)
    resp = client.get(f"/matches/{session.id}/report")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    html = resp.text
    assert "Mölkky Match Report" in html
    assert "Alpha" in html and "Beta" in html
    assert "Al, Ann" in html
    assert "WINNER" in html
    assert "Opponent missed 3 times in a row" in html
    assert 'X<span class="note">Miss</span>' in html
    assert "Referee" in html


def test_report_page_without_throws(page_client):
    client, store = page_client
    session = client.portal.call(_start, store)
    resp = client.get(f"/matches/{session.id}/report")
    assert resp.status_code == 200
    assert "No throws recorded yet" in resp.text
    assert "WINNER" not in resp.text


def test_report_page_embeds_signatures(page_client):
    client, store = page_client
    session = client.portal.call(_start, store)
    session.signatures["captainB"] = "data:image/png;base64,AAAA"
    resp = client.get(f"/matches/{session.id}/report")
    assert 'src="data:image/png;base64,AAAA"' in resp.text
    assert "Captain B signature" in resp.text
