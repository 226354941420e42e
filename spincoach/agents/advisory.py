"""
Advisory service: request/response models and the clients that call an LLM.

The orchestrator sends a compact snapshot of the call (stage, recent
transcript, recap, deal state, proof pack, stage timers) and gets back one
short suggestion plus an optional whisper. Clients return raw payloads; all
parsing and confidence gating happens in `parse_advisory_payload` / `gate`.
"""

import asyncio
import json
import math
import re
from typing import Any, Dict, List, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from spincoach.config import Config

PAUSE = "(pause)"

DEFAULT_PROOF_PACK = """
- Time: Reclaim 6–10 hrs/wk per rep via automated logging.
- Pipeline: Lift stage 2→3 by 8–12% via implication tracking.
- Risk: Reduce slip by 10–15% with objection playbooks.
- Experience: Raise buyer scores by 0.3–0.6 via structured discovery.
- Quality: Cut handoff leakage 18% with structured notes.
- Velocity: Shorten cycle 7–12 days via tight CTAs.
""".strip()


class AdvisoryRequest(BaseModel):
    stage: str
    transcript_window: List[str] = Field(default_factory=list)
    recap: str = ""
    deal_state: Dict[str, Any] = Field(default_factory=dict)
    proof_pack: str = DEFAULT_PROOF_PACK
    stage_timers: Dict[str, int] = Field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "stage": self.stage,
            "transcriptWindow": list(self.transcript_window),
            "recap": self.recap,
            "dealState": dict(self.deal_state),
            "proofPack": self.proof_pack,
            "stageTimers": dict(self.stage_timers),
        }


class AdvisoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stage: Optional[str] = None
    say_next: str = Field(PAUSE, validation_alias=AliasChoices("say_next", "sayNext"))
    coach_whisper: Optional[str] = Field(None, validation_alias=AliasChoices("coach_whisper", "coachWhisper"))
    confidence: float = 0.0
    why: Optional[str] = None
    risk: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_output(cls, data):
        if isinstance(data, dict) and isinstance(data.get("output"), dict):
            return data["output"]
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        try:
            num = float(v)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(num):
            return 0.0
        return min(1.0, max(0.0, num))

    @field_validator("say_next", mode="before")
    @classmethod
    def _say_next_text(cls, v):
        if v is None:
            return PAUSE
        text = str(v).strip()
        return text or PAUSE

    @field_validator("coach_whisper", "why", "risk", "stage", mode="before")
    @classmethod
    def _optional_text(cls, v):
        if v is None:
            return None
        return str(v).strip()

    @field_validator("meta", mode="before")
    @classmethod
    def _meta_dict(cls, v):
        return v if isinstance(v, dict) else {}

    @classmethod
    def default_for(cls, stage: str) -> "AdvisoryResponse":
        return cls(stage=stage, say_next=PAUSE, coach_whisper=None, confidence=0.0)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "say_next": self.say_next,
            "coach_whisper": self.coach_whisper,
            "confidence": self.confidence,
            "why": self.why,
            "risk": self.risk,
            "meta": self.meta,
        }


def _extract_json(text: str) -> Optional[dict]:
    s = text.strip()
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        pass
    match = re.search(r"\{.*\}", s, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


def parse_advisory_payload(raw: Any, stage: str) -> AdvisoryResponse:
    """
    Best-effort parse of whatever the advisory service returned.

    Accepts a dict, a JSON string, or text with a JSON object embedded in it.
    Anything unusable (including a payload without `say_next`) becomes the
    default "(pause)" response for `stage`.
    """
    data = raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        data = _extract_json(raw) if raw.strip() else None
    if not isinstance(data, dict):
        return AdvisoryResponse.default_for(stage)

    body = data.get("output") if isinstance(data.get("output"), dict) else data
    if "say_next" not in body and "sayNext" not in body:
        return AdvisoryResponse.default_for(stage)

    try:
        return AdvisoryResponse.model_validate(body)
    except ValueError as e:
        print(f"Advisory response rejected: {e}")
        return AdvisoryResponse.default_for(stage)


def gate(resp: AdvisoryResponse, threshold: float = 0.35) -> AdvisoryResponse:
    """Low-confidence responses never carry a suggestion or whisper."""
    if resp.confidence < threshold:
        return resp.model_copy(update={"say_next": PAUSE, "coach_whisper": ""})
    return resp


ORCHESTRATOR_PROMPT = """You are the orchestrator for real-time SPIN B2B sales coaching. One high-impact line at a time. No buyer roleplay.
- Keep stage timing: Situation <=4m, Problem 6-8m, Implication 6-8m, Need-Payoff 5-6m.
- If Situation facts >=3 or >4m, move to Problem.
- Require >=3 problems before Implication; require >=2 quantified implications before Need-Payoff.
- Speak in business outcomes with metrics; avoid feature talk.
- Never invent company facts, numbers, or outcomes. If it is not in the transcript, ask a question instead.
- If unsafe/unknown/low confidence -> (pause).

Respond ONLY with a raw JSON object. NO markdown blocks.
{{
  "stage": "situation|problem|implication|need_payoff",
  "say_next": "string|(pause)",
  "coach_whisper": "string",
  "confidence": 0-1,
  "why": "short link to pain/implication",
  "risk": "short risk chip or ''"
}}
If confidence <0.35 -> say_next="(pause)" and empty whisper.

STAGE: {stage}
STAGE TIMERS (sec): {timers}

TRANSCRIPT WINDOW:
{transcript}

ROLLING RECAP:
{recap}

DEAL STATE:
{deal_state}

PROOF PACK:
{proof_pack}
"""


def build_advisory_prompt(request: AdvisoryRequest) -> str:
    return ORCHESTRATOR_PROMPT.format(
        stage=request.stage,
        timers=json.dumps(request.stage_timers),
        transcript="\n".join(request.transcript_window) or "n/a",
        recap=request.recap or "n/a",
        deal_state=json.dumps(request.deal_state, ensure_ascii=False),
        proof_pack=request.proof_pack or DEFAULT_PROOF_PACK,
    )


SECTOR_PROMPT = """Jsi elitní Sales Strategist pro český B2B trh. Tvým úkolem je analyzovat prospekta a připravit "Battle Card" na míru.

DEFINOVANÉ SEKTORY:
1. SaaS / IT / Tech (Pain: integrace, security, škálování)
2. E-commerce / Retail (Pain: marže, logistika, vratky, Q4 sezóna)
3. Marketing / Agency (Pain: klientská retence, reporting, kreativní chaos)
4. Finance / Legal / Consulting (Pain: compliance, risk, efektivita času)
5. Construction / Real Estate (Pain: termíny, subdodavatelé, ceny materiálů)
6. Manufacturing / Logistics (Pain: prostoje, energie, supply chain)
7. HR / Recruitment (Pain: talent shortage, onboarding)

INSTRUKCE:
1. Podle názvu firmy "{company}" a oboru "{industry}" urči jeden z výše uvedených SEKTORŮ.
2. Vytvoř 3 "Killer Objections Handlers" specifické pro tento sektor.
   - NEPOUŽÍVEJ obecné fráze ("Chápu vás").
   - POUŽIJ "Industry Jargon".

Pozice osoby: {title}

Odpověz POUZE JSON objektem:
{{
  "detected_sector": "Název Sektoru",
  "sector_emoji": "Ikona",
  "strategy_insight": "Jedna věta, na co se v tomto sektoru zaměřit",
  "objections": [{{"trigger": "...", "rebuttal": "..."}}]
}}
"""


class GeminiAdvisor:
    """Calls Gemini through the blocking SDK in the default executor."""

    def __init__(self, api_key: str = None, model: str = None):
        import google.generativeai as genai

        self.api_key = api_key or Config.GEMINI_API_KEY
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is required for the gemini advisor")
        self.model_name = model or Config.GEMINI_MODEL

        genai.configure(api_key=self.api_key)
        self.gemini = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "temperature": 0.4,
                "max_output_tokens": 512,
            },
        )

    async def _generate(self, prompt: str) -> str:
        return await asyncio.get_event_loop().run_in_executor(
            None,
            lambda: self.gemini.generate_content(prompt).text,
        )

    async def advise(self, request: AdvisoryRequest) -> str:
        text = await self._generate(build_advisory_prompt(request))
        return text

    async def sector_battlecards(self, company: str, industry: str = "", title: str = "") -> Optional[dict]:
        prompt = SECTOR_PROMPT.format(
            company=company,
            industry=industry or "neznámý",
            title=title or "Rozhodovatel",
        )
        text = await self._generate(prompt)
        data = _extract_json(text or "")
        if not isinstance(data, dict):
            print("Sector battlecard response was not JSON")
            return None
        return data


class HttpAdvisor:
    """Posts the camelCase advisory payload to a remote endpoint."""

    def __init__(self, url: str = None, api_key: str = None, timeout: float = None):
        self.url = url or Config.ADVISORY_URL
        if not self.url:
            raise ValueError("ADVISORY_URL is required for the http advisor")
        api_key = api_key or Config.ADVISORY_API_KEY
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = httpx.AsyncClient(
            timeout=timeout or Config.ADVISORY_TIMEOUT_SECONDS,
            headers=headers,
        )

    async def advise(self, request: AdvisoryRequest) -> Any:
        resp = await self.client.post(self.url, json=request.to_payload())
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError:
            return resp.text

    async def aclose(self):
        await self.client.aclose()


def create_advisor(kind: str = None):
    """Build the configured advisor. "none" disables advisory calls."""
    kind = (kind or Config.ADVISOR).lower()
    if kind == "none":
        return None
    if kind == "gemini":
        return GeminiAdvisor()
    if kind == "http":
        return HttpAdvisor()
    raise ValueError(f"Unsupported advisor: '{kind}'. Supported: 'gemini', 'http', 'none'")
