"""Inbound websocket events from the caption bridge and the seller UI."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator


class CaptionEvent(BaseModel):
    type: Literal["caption"]
    text: str
    ts: Optional[float] = None  # epoch milliseconds on the wire
    speaker: Optional[str] = Field(None, alias="speakerName")

    model_config = {"populate_by_name": True}

    @field_validator("speaker", mode="before")
    @classmethod
    def _blank_speaker(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @property
    def ts_seconds(self) -> Optional[float]:
        return None if self.ts is None else self.ts / 1000.0


class BridgeReadyEvent(BaseModel):
    type: Literal["bridge_ready"]
    ts: Optional[float] = None

    @property
    def ts_seconds(self) -> Optional[float]:
        return None if self.ts is None else self.ts / 1000.0


class SessionStartEvent(BaseModel):
    type: Literal["session_start"]
    lead: Dict[str, Any] = Field(default_factory=dict)
    generate_cards: bool = False


class SessionEndEvent(BaseModel):
    type: Literal["session_end"]


class CardActionEvent(BaseModel):
    type: Literal["use_card", "dismiss_card"]
    key: str


class HotkeyEvent(BaseModel):
    type: Literal["hotkey"]
    key: str

    @field_validator("key", mode="before")
    @classmethod
    def _digit(cls, v):
        return str(v).strip()


class SetPhaseEvent(BaseModel):
    type: Literal["set_phase"]
    phase: str


class ClearFeedEvent(BaseModel):
    type: Literal["clear_feed"]


class AugmentCardsEvent(BaseModel):
    type: Literal["augment_cards"]
    cards: List[Dict[str, Any]] = Field(default_factory=list)
    sector: Optional[Dict[str, Any]] = None
    generate: bool = False


InboundEvent = Annotated[
    Union[
        CaptionEvent,
        BridgeReadyEvent,
        SessionStartEvent,
        SessionEndEvent,
        CardActionEvent,
        HotkeyEvent,
        SetPhaseEvent,
        ClearFeedEvent,
        AugmentCardsEvent,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES = {
    "caption", "bridge_ready", "session_start", "session_end", "use_card",
    "dismiss_card", "hotkey", "set_phase", "clear_feed", "augment_cards",
}

_adapter = TypeAdapter(InboundEvent)


def parse_event(data: Any, caption_source: Optional[str] = None) -> Optional[InboundEvent]:
    """
    Validate one inbound message. Unknown types, malformed payloads and
    messages from a foreign `source` are ignored (None).
    """
    if not isinstance(data, dict):
        return None
    source = data.get("source")
    if source is not None and caption_source and source != caption_source:
        return None
    # the bridge wraps captions as {"type": "MEET_CAPTION", "payload": {...}}
    if data.get("type") == "MEET_CAPTION" and isinstance(data.get("payload"), dict):
        data = {**data["payload"], "type": "caption"}
    elif data.get("type") == "BRIDGE_READY":
        data = {**data, "type": "bridge_ready"}
    if data.get("type") not in EVENT_TYPES:
        return None
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        print(f"Ignoring inbound event {data.get('type')!r}: {e.error_count()} validation error(s)")
        return None
