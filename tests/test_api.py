import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from spincoach import main
from spincoach.agents.orchestrator import CoachingOrchestrator
from spincoach.api.events import (
    CaptionEvent,
    CardActionEvent,
    HotkeyEvent,
    parse_event,
)
from spincoach.config import Config


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "create_advisor", lambda: None)
    main.active_agents.clear()
    with TestClient(main.app) as c:
        yield c
    main.active_agents.clear()


def receive_until(ws, msg_type, limit=20):
    for _ in range(limit):
        msg = ws.receive_json()
        if msg.get("type") == msg_type:
            return msg
    raise AssertionError(f"no {msg_type!r} message received")


def test_health(client):
    assert client.get("/health").json()["status"] == "alive"
    assert client.get("/api/health").json() == {"status": "ok"}


def test_list_cards(client):
    body = client.get("/api/cards").json()
    assert len(body["cards"]) == 12
    assert body["hotkeys"]["1"] == "price"
    assert {"key", "primaryResponse", "followUpPrompt"} <= set(body["cards"][0])


def test_search_cards(client):
    body = client.get("/api/cards/search", params={"q": "gdpr"}).json()
    assert body["results"][0]["key"] == "gdpr"


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/nope/state").status_code == 404
    assert client.post("/api/sessions/nope/phase", json={"phase": "problem"}).status_code == 404


def test_live_session_over_websocket(client):
    with client.websocket_connect("/ws/t1") as ws:
        assert ws.receive_json()["type"] == "connected"

        ws.send_json({"type": "session_start", "lead": {"company": "Acme"}})
        assert receive_until(ws, "session_started")["lead"] == {"company": "Acme"}

        ws.send_json({"type": "caption", "text": "No, máme na to rozpočet problém",
                      "speakerName": "CEO", "source": Config.CAPTION_SOURCE})
        assert receive_until(ws, "feed_line")["line"]["speaker"] == "CEO"
        assert receive_until(ws, "suggestion")["card"] == "price"

        state = client.get("/api/sessions/t1/state").json()
        assert state["status"] == "live"
        assert state["active_card"] == "price"
        assert state["liveness"]["captions"] == "connected"

        ws.send_json({"type": "hotkey", "key": 9})
        assert receive_until(ws, "suggestion")["card"] == "pilot"

        ws.send_json({"type": "set_phase", "phase": "problem"})
        assert receive_until(ws, "phase")["phase"] in ("situation", "problem")

        ws.send_json({"type": "session_end"})
        assert receive_until(ws, "session_ended")["summary"]["lines_accepted"] == 1


def test_invalid_json_gets_error_reply(client):
    with client.websocket_connect("/ws/t2") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        assert receive_until(ws, "error")["error"] == "Invalid JSON"


def test_rest_phase_and_card_augmentation(client):
    with client.websocket_connect("/ws/t3") as ws:
        ws.receive_json()
        ws.send_json({"type": "session_start"})
        receive_until(ws, "session_started")

        resp = client.post("/api/sessions/t3/phase", json={"phase": "need-payoff"})
        assert resp.status_code == 200
        assert resp.json()["changed"] is True
        assert resp.json()["phase"] == "payoff"

        assert client.post("/api/sessions/t3/phase", json={"phase": "close"}).status_code == 400

        resp = client.post("/api/sessions/t3/cards", json={"cards": [{
            "key": "competitor",
            "title": "Konkurence",
            "triggers": ["konkurence"],
            "primary": "V čem je jejich nabídka lepší?",
        }]})
        assert resp.status_code == 200
        assert resp.json()["cards"] == ["competitor"]
        assert resp.json()["total"] == 13

        assert client.post("/api/sessions/t3/cards", json={"cards": [{"key": "bad"}]}).status_code == 400
        assert client.post("/api/sessions/t3/cards", json={}).status_code == 400


def test_disallowed_origin_is_rejected(client, monkeypatch):
    monkeypatch.setattr(Config, "ALLOWED_ORIGINS", ["https://meet.google.com"])
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/t4", headers={"origin": "https://evil.example"}) as ws:
            ws.receive_json()


# ── inbound event parsing ──

def test_caption_event_converts_milliseconds():
    event = parse_event({"type": "caption", "text": "ahoj", "ts": 1500, "source": "echo-meet-coach"},
                        "echo-meet-coach")
    assert isinstance(event, CaptionEvent)
    assert event.ts_seconds == 1.5


def test_foreign_source_is_ignored():
    assert parse_event({"type": "caption", "text": "ahoj", "source": "other"}, "echo-meet-coach") is None


def test_bridge_envelope_is_unwrapped():
    event = parse_event({
        "source": "echo-meet-coach",
        "type": "MEET_CAPTION",
        "payload": {"text": "Kolik to stojí?", "speakerName": "Petr", "ts": 2000},
    }, "echo-meet-coach")
    assert isinstance(event, CaptionEvent)
    assert event.speaker == "Petr"


@pytest.mark.parametrize("data", [
    {"type": "dance"},
    {"type": "use_card"},
    {"type": "caption"},
    "caption",
    None,
])
def test_unusable_events_are_ignored(data):
    assert parse_event(data, "echo-meet-coach") is None


def test_event_types():
    assert isinstance(parse_event({"type": "hotkey", "key": 3}), HotkeyEvent)
    assert parse_event({"type": "hotkey", "key": 3}).key == "3"
    event = parse_event({"type": "dismiss_card", "key": "price"})
    assert isinstance(event, CardActionEvent) and event.type == "dismiss_card"


def test_closed_sockets_release_their_coaches(client):
    for i in range(3):
        with client.websocket_connect(f"/ws/r{i}") as ws:
            ws.receive_json()
            ws.send_json({"type": "session_start"})
            receive_until(ws, "session_started")
    assert main.active_agents == {}
    assert main.session_workers == {}
    assert client.get("/api/sessions/r0/state").status_code == 404


async def test_sector_generation_does_not_block_dispatch():
    release = asyncio.Event()

    class SlowSectorAdvisor:
        async def sector_battlecards(self, company, industry="", title=""):
            await release.wait()
            return {"detected_sector": "Retail",
                    "objections": [{"trigger": "sezónní výkyvy", "rebuttal": "Jak je dnes řešíte?"}]}

    agent = CoachingOrchestrator("t5", main.ws_manager, advisor=SlowSectorAdvisor())
    await agent.start_session({"company": "Acme"})

    await main.handle_frontend_message({"type": "augment_cards", "generate": True}, agent, "t5")
    [task] = main.session_tasks["t5"]
    assert not task.done()

    # captions keep flowing while generation is pending
    await main.handle_frontend_message({"type": "caption", "text": "Je to drahé"}, agent, "t5")
    assert agent.session.active_key == "price"

    release.set()
    assert await task == ["dyn_retail_1"]
    assert "dyn_retail_1" in agent.session.library
    await asyncio.sleep(0)
    assert main.session_tasks.pop("t5") == set()
