import json

import httpx
import pytest

from spincoach.agents import advisory
from spincoach.agents.advisory import (
    PAUSE,
    AdvisoryRequest,
    AdvisoryResponse,
    HttpAdvisor,
    build_advisory_prompt,
    create_advisor,
    gate,
    parse_advisory_payload,
)
from spincoach.config import Config


def test_request_payload_uses_wire_keys():
    req = AdvisoryRequest(
        stage="problem",
        transcript_window=["Klient: máme problém s fluktuací"],
        recap="Klient: máme problém s fluktuací",
        deal_state={"lead": {"company": "Acme"}},
        stage_timers={"situation": 120, "problem": 30},
    )
    payload = req.to_payload()
    assert set(payload) == {"stage", "transcriptWindow", "recap", "dealState", "proofPack", "stageTimers"}
    assert payload["transcriptWindow"] == ["Klient: máme problém s fluktuací"]
    assert payload["proofPack"]


def test_parse_accepts_camel_case_keys():
    resp = parse_advisory_payload(
        {"stage": "problem", "sayNext": "Co vás to stojí?", "coachWhisper": "Ptej se na čísla", "confidence": 0.7},
        "situation",
    )
    assert resp.say_next == "Co vás to stojí?"
    assert resp.coach_whisper == "Ptej se na čísla"
    assert resp.stage == "problem"


def test_parse_unwraps_output_envelope():
    raw = {"output": {"say_next": "Jaký je dopad?", "confidence": 0.9}, "model": "x"}
    resp = parse_advisory_payload(raw, "implication")
    assert resp.say_next == "Jaký je dopad?"
    assert resp.confidence == 0.9


def test_parse_json_embedded_in_text():
    text = 'Sure:\n```json\n{"say_next": "Shrňte to", "confidence": 0.5}\n```'
    resp = parse_advisory_payload(text, "payoff")
    assert resp.say_next == "Shrňte to"


@pytest.mark.parametrize("raw", [None, "", "not json at all", 42, [], {"confidence": 0.9}, "{broken"])
def test_malformed_payload_becomes_pause(raw):
    resp = parse_advisory_payload(raw, "problem")
    assert resp.say_next == PAUSE
    assert resp.confidence == 0
    assert resp.stage == "problem"


@pytest.mark.parametrize("value, expected", [(1.7, 1.0), (-3, 0.0), ("0.4", 0.4), ("nan", 0.0), (None, 0.0), ("x", 0.0)])
def test_confidence_is_clamped(value, expected):
    resp = AdvisoryResponse.model_validate({"say_next": "x", "confidence": value})
    assert resp.confidence == expected


def test_low_confidence_is_gated():
    resp = parse_advisory_payload({"say_next": "Zkuste slevu", "coach_whisper": "tlač", "confidence": 0.2}, "problem")
    gated = gate(resp, 0.35)
    assert gated.say_next == PAUSE
    assert gated.coach_whisper == ""


def test_confident_response_passes_gate():
    resp = parse_advisory_payload({"say_next": "Co to znamená pro tým?", "confidence": 0.35}, "problem")
    assert gate(resp, 0.35).say_next == "Co to znamená pro tým?"


def test_prompt_contains_call_context():
    req = AdvisoryRequest(stage="implication", transcript_window=["—: ztrácíme lidi"],
                          stage_timers={"implication": 42})
    prompt = build_advisory_prompt(req)
    assert "STAGE: implication" in prompt
    assert "—: ztrácíme lidi" in prompt
    assert '"implication": 42' in prompt


def test_create_advisor_variants(monkeypatch):
    assert create_advisor("none") is None
    with pytest.raises(ValueError):
        create_advisor("bogus")

    monkeypatch.setattr(Config, "ADVISORY_URL", None)
    with pytest.raises(ValueError):
        create_advisor("http")


async def test_http_advisor_posts_payload(monkeypatch):
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"output": {"say_next": "Kdy to řešíte?", "confidence": 0.6}})

    adv = HttpAdvisor(url="https://coach.example/spin/next", api_key="k")
    adv.client = httpx.AsyncClient(transport=httpx.MockTransport(handler),
                                   headers={"Authorization": "Bearer k"})

    raw = await adv.advise(AdvisoryRequest(stage="situation", transcript_window=["A: ahoj"]))
    await adv.aclose()

    assert seen["body"]["transcriptWindow"] == ["A: ahoj"]
    assert seen["auth"] == "Bearer k"
    assert parse_advisory_payload(raw, "situation").say_next == "Kdy to řešíte?"


async def test_http_advisor_raises_on_server_error():
    adv = HttpAdvisor(url="https://coach.example/spin/next")
    adv.client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    with pytest.raises(httpx.HTTPStatusError):
        await adv.advise(AdvisoryRequest(stage="situation"))
    await adv.aclose()


def test_default_proof_pack_is_used():
    assert AdvisoryRequest(stage="situation").proof_pack == advisory.DEFAULT_PROOF_PACK
