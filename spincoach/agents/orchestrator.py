import asyncio
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from spincoach.agents.advisory import (
    DEFAULT_PROOF_PACK,
    AdvisoryRequest,
    AdvisoryResponse,
    gate,
    parse_advisory_payload,
)
from spincoach.agents.spin_phase import PhaseMachine, parse_phase
from spincoach.agents.whisper import WhisperSlot, static_tip
from spincoach.config import CoachSettings
from spincoach.memory.caption_buffer import CaptionBuffer, FeedLine
from spincoach.memory.cooldowns import CooldownRegistry
from spincoach.tools.battlecards import (
    DEFAULT_LIBRARY,
    HOTKEYS,
    Battlecard,
    CardLibrary,
    card_from_dict,
    cards_from_sector_response,
)
from spincoach.tools.matcher import Matches, MatchResult, pick_top_matches, score_card

if TYPE_CHECKING:
    from spincoach.api.websocket_handler import WebSocketManager

UNKNOWN_SPEAKER = "—"


class SessionStatus:
    PREP = "prep"
    LIVE = "live"
    ENDED = "ended"


class CallStatus:
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class CoachSession:
    """Everything one coaching session owns. Replaced wholesale on restart."""

    def __init__(self, settings: CoachSettings, clock: Callable[[], float],
                 library: CardLibrary = DEFAULT_LIBRARY):
        self.buffer = CaptionBuffer(
            capacity=settings.feed_capacity,
            retention_seconds=settings.feed_retention_seconds,
            clock=clock,
        )
        self.cooldowns = CooldownRegistry()
        self.phase = PhaseMachine()
        self.library = library
        self.lead: Dict[str, Any] = {}
        self.proof_pack = DEFAULT_PROOF_PACK

        self.status = SessionStatus.PREP
        self.call_status = CallStatus.IDLE
        self.last_call_at: Optional[float] = None
        self.last_cycle_count = 0

        self.active_key: Optional[str] = None
        self.active_source: Optional[str] = None
        self.matches = Matches()
        self.last_advice: Optional[AdvisoryResponse] = None
        self.surfaced: List[str] = []
        self.advisory_calls = 0
        self.tip_index = 0
        self.started_at: Optional[float] = None


class CoachingOrchestrator:
    def __init__(self, session_id: str, ws_manager: "WebSocketManager", advisor=None,
                 settings: Optional[CoachSettings] = None,
                 clock: Callable[[], float] = time.time):
        self.session_id = session_id
        self.ws_manager = ws_manager
        self.advisor = advisor
        self.settings = settings or CoachSettings()
        self.clock = clock

        self.session = CoachSession(self.settings, clock)
        self.whisper = WhisperSlot(ttl=self.settings.whisper_ttl_seconds, on_expire=self._whisper_expired)
        self._call_task: Optional[asyncio.Task] = None

        print(f"Coach initialized for session {session_id}")

    async def _send(self, data: dict):
        await self.ws_manager.send(self.session_id, data)

    # ── lifecycle ──

    async def start_session(self, lead: Optional[dict] = None):
        await self._cancel_pending()
        previous = self.session
        session = CoachSession(self.settings, self.clock)
        # cards and lead prepared before going live carry over; nothing else does
        if previous.status == SessionStatus.PREP:
            session.library = previous.library
            session.lead = previous.lead
            session.proof_pack = previous.proof_pack
        if lead:
            session.lead = dict(lead)
        session.status = SessionStatus.LIVE
        session.started_at = self.clock()
        session.phase.start()
        self.session = session

        print(f"Coach session started: {self.session_id}")
        await self._send({
            "type": "session_started",
            "lead": session.lead,
            "phase": session.phase.snapshot().to_dict(),
        })

    async def end_session(self) -> dict:
        s = self.session
        await self._cancel_pending()
        s.call_status = CallStatus.IDLE
        s.phase.stop()
        s.status = SessionStatus.ENDED

        summary = {
            **s.phase.snapshot().to_dict(),
            "lines_accepted": s.buffer.accepted_count,
            "cards_surfaced": list(s.surfaced),
            "advisory_calls": s.advisory_calls,
        }
        print(f"Coach session ended: {self.session_id}, {summary['total_elapsed_seconds']}s, "
              f"{len(s.surfaced)} cards")
        await self._send({"type": "session_ended", "summary": summary})
        return summary

    async def _cancel_pending(self):
        if self._call_task and not self._call_task.done():
            self._call_task.cancel()
        self._call_task = None
        if self.whisper.visible:
            self.whisper.clear()
            await self._send({"type": "whisper_cleared"})
        else:
            self.whisper.cancel()

    async def aclose(self):
        """Stop pending work and release the advisor. Called when the session is dropped."""
        await self._cancel_pending()
        close = getattr(self.advisor, "aclose", None)
        if close is not None:
            await close()

    # ── captions and matching ──

    async def on_caption(self, text: str, ts: Optional[float] = None,
                         speaker: Optional[str] = None) -> Optional[FeedLine]:
        s = self.session
        if s.status == SessionStatus.ENDED:
            return None
        line = s.buffer.add(text, ts=ts, speaker=speaker)
        if line is None:
            return None

        await self._send({"type": "feed_line", "line": line.to_dict()})
        await self._evaluate()
        return line

    async def mark_bridge_ready(self, ts: Optional[float] = None):
        self.session.buffer.mark_bridge_ready(ts)
        await self._send({"type": "coach_status", "status": "bridge_ready",
                          **self.session.buffer.liveness(self.clock())})

    async def clear_feed(self):
        self.session.buffer.clear()
        self.session.matches = Matches()
        await self._send({"type": "feed_cleared"})
        await self._clear_active()

    async def _evaluate(self):
        s = self.session
        now = self.clock()
        lines = s.buffer.window(now, self.settings.match_window_seconds)
        s.matches = pick_top_matches(lines, s.library, s.cooldowns, now)

        # a card the seller picked stays until they act on it
        if s.active_key is not None and s.active_source != "match":
            return

        best = s.matches.best
        if best is not None and best.key != s.active_key:
            s.active_key = best.key
            s.active_source = "match"
            s.cooldowns.suppress(best.key, self.settings.cooldown_tip_seconds, now)
            s.surfaced.append(best.key)
            await self._send(self._suggestion(best.card, score=best.score, source="match"))
        elif best is None and s.active_key is not None:
            # the surfaced card is cooling, so score it directly against the window
            card = s.library.get(s.active_key)
            if card is None or score_card(card, lines, s.library) <= 0:
                await self._clear_active()

    async def _clear_active(self):
        s = self.session
        key = s.active_key
        if key is None:
            return
        s.active_key = None
        s.active_source = None
        await self._send({"type": "suggestion_cleared", "card": key})

    def _suggestion(self, card: Battlecard, score: Optional[int] = None, source: str = "match") -> dict:
        msg = {
            "type": "suggestion",
            "source": source,
            "card": card.key,
            "category": card.category,
            "title": card.title,
            "primaryResponse": card.primary,
            "alternates": list(card.alternates),
            "followUpPrompt": card.follow_up,
            "toneHint": card.tone,
            "score": score,
        }
        alt = self.session.matches.alt
        persona = self.session.matches.persona
        if alt is not None and alt.key != card.key:
            msg["alt"] = _match_brief(alt)
        if persona is not None:
            msg["persona"] = _match_brief(persona)
        return msg

    # ── operator actions ──

    async def use_card(self, key: str) -> bool:
        s = self.session
        if key not in s.library:
            return False
        s.cooldowns.suppress(key, self.settings.cooldown_use_seconds, self.clock())
        s.active_key = key
        s.active_source = "use"
        await self._send({"type": "card_used", "card": key})
        return True

    async def dismiss_card(self, key: str) -> bool:
        s = self.session
        if key not in s.library:
            return False
        s.cooldowns.suppress(key, self.settings.cooldown_dismiss_seconds, self.clock())
        if s.active_key == key:
            await self._clear_active()
        return True

    async def pick_hotkey(self, digit: str) -> Optional[Battlecard]:
        s = self.session
        card = s.library.get(HOTKEYS.get(str(digit).strip(), ""))
        if card is None:
            return None
        s.cooldowns.suppress(card.key, self.settings.cooldown_hotkey_seconds, self.clock())
        s.active_key = card.key
        s.active_source = "hotkey"
        s.surfaced.append(card.key)
        await self._send(self._suggestion(card, source="hotkey"))
        return card

    async def set_phase(self, phase, source: str = "manual") -> bool:
        changed = self.session.phase.set_phase(phase, source)
        if changed:
            await self._send_phase(source)
        return changed

    async def _send_phase(self, source: str):
        await self._send({"type": "phase", "source": source, **self.session.phase.snapshot().to_dict()})

    # ── card augmentation ──

    def augment_cards(self, cards: Optional[List[dict]] = None,
                      sector: Optional[dict] = None) -> List[str]:
        """Merge operator- or generator-supplied cards. Raises ValueError on bad cards."""
        new_cards = [card_from_dict(c) for c in (cards or [])]
        if sector:
            new_cards.extend(cards_from_sector_response(sector))
        if new_cards:
            self.session.library = self.session.library.merged(new_cards)
            print(f"Added {len(new_cards)} cards to session {self.session_id}")
        return [c.key for c in new_cards]

    async def generate_sector_cards(self) -> List[str]:
        generate = getattr(self.advisor, "sector_battlecards", None)
        lead = self.session.lead
        if generate is None or not lead.get("company"):
            return []
        try:
            payload = await generate(lead.get("company", ""), lead.get("industry", ""), lead.get("role", ""))
        except Exception as e:
            print(f"Sector battlecard generation failed: {e}")
            return []
        if not payload:
            return []
        keys = self.augment_cards(sector=payload)
        if keys:
            await self._send({"type": "cards_added", "cards": keys, "source": "sector"})
        return keys

    # ── clock and advisory ──

    async def tick(self) -> Optional[asyncio.Task]:
        s = self.session
        if s.status != SessionStatus.LIVE:
            return None
        s.phase.tick()
        await self._send_phase("tick")
        return self.maybe_advise()

    def maybe_advise(self) -> Optional[asyncio.Task]:
        s = self.session
        if self.advisor is None:
            return None
        if s.status != SessionStatus.LIVE or s.call_status != CallStatus.IDLE:
            return None
        if s.buffer.accepted_count == s.last_cycle_count or not len(s.buffer):
            return None
        now = self.clock()
        if s.last_call_at is not None and now - s.last_call_at < self.settings.min_interval_seconds:
            return None

        s.call_status = CallStatus.IN_FLIGHT
        s.last_call_at = now
        s.last_cycle_count = s.buffer.accepted_count
        s.advisory_calls += 1
        request = self.build_request()
        self._call_task = asyncio.create_task(self._advise(s, request))
        return self._call_task

    def build_request(self) -> AdvisoryRequest:
        s = self.session
        cfg = self.settings

        window = [_render_line(l) for l in s.buffer.recent(cfg.transcript_window_lines)]
        while len(window) > 1 and len("\n".join(window)) > cfg.transcript_max_chars:
            window.pop(0)
        if window and len(window[0]) > cfg.transcript_max_chars:
            window[0] = window[0][-cfg.transcript_max_chars:]

        recap = "\n".join(_render_line(l) for l in s.buffer.recent(cfg.recap_lines))
        recap = recap[-cfg.recap_max_chars:]

        deal_state = {
            "lead": s.lead,
            "active_card": s.active_key,
            "cards_surfaced": s.surfaced[-5:],
        }
        return AdvisoryRequest(
            stage=s.phase.current.value,
            transcript_window=window,
            recap=recap,
            deal_state=deal_state,
            proof_pack=s.proof_pack,
            stage_timers=s.phase.stage_timers(),
        )

    async def _advise(self, session: CoachSession, request: AdvisoryRequest) -> Optional[AdvisoryResponse]:
        try:
            raw = await asyncio.wait_for(
                self.advisor.advise(request),
                timeout=self.settings.advisory_timeout_seconds,
            )
        except Exception as e:
            print(f"Advisory call failed: {e!r}")
            session.call_status = CallStatus.IDLE
            if session is self.session and session.status == SessionStatus.LIVE:
                await self._advisory_failed()
            return None
        session.call_status = CallStatus.IDLE

        # session ended or restarted while the call was out
        if session is not self.session or session.status != SessionStatus.LIVE:
            return None

        resp = gate(parse_advisory_payload(raw, request.stage), self.settings.confidence_threshold)
        session.last_advice = resp

        target = parse_phase(resp.stage)
        if target is not None and target != session.phase.current:
            await self.set_phase(target, source="advisory")

        await self._send({"type": "advice", **resp.to_dict()})
        if resp.coach_whisper:
            await self._show_whisper(resp.coach_whisper, "high" if resp.risk else "medium")
        return resp

    async def _advisory_failed(self):
        await self._send({
            "type": "coach_status",
            "status": "error",
            "recoverable": True,
            "message": "Advisory service unavailable",
        })
        if not self.whisper.visible:
            s = self.session
            tip = static_tip(s.phase.current, s.tip_index)
            s.tip_index += 1
            await self._show_whisper(tip, "low")

    # ── whisper ──

    async def _show_whisper(self, text: str, priority: str):
        self.whisper.show(text, priority)
        await self._send({"type": "whisper", "text": text, "priority": priority})

    async def _whisper_expired(self):
        await self._send({"type": "whisper_cleared"})

    # ── inspection ──

    def state(self) -> dict:
        s = self.session
        now = self.clock()
        return {
            "session_id": self.session_id,
            "status": s.status,
            "call_status": s.call_status,
            "phase": s.phase.snapshot().to_dict(),
            "active_card": s.active_key,
            "active_source": s.active_source,
            "matches": {
                "best": _match_brief(s.matches.best),
                "alt": _match_brief(s.matches.alt),
                "persona": _match_brief(s.matches.persona),
            },
            "cooldowns": {k: round(v - now, 1) for k, v in s.cooldowns.as_dict(now).items()},
            "liveness": s.buffer.liveness(now),
            "feed": [l.to_dict() for l in s.buffer.recent(10)],
            "whisper": self.whisper.current,
            "last_advice": s.last_advice.to_dict() if s.last_advice else None,
            "cards": len(s.library),
        }


def _render_line(line: FeedLine) -> str:
    return f"{line.speaker or UNKNOWN_SPEAKER}: {line.text}"


def _match_brief(match: Optional[MatchResult]) -> Optional[dict]:
    if match is None:
        return None
    return {"card": match.key, "title": match.card.title, "category": match.card.category, "score": match.score}
