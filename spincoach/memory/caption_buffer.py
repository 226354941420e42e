"""
Bounded in-memory caption feed.

Accepted lines are kept for a short retention window and capped in count.
Repeated deliveries of the same caption (same timestamp, speaker and text)
are dropped by id.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Set

CAPTIONS_CONNECTED_SECONDS = 10.0
BRIDGE_OK_SECONDS = 60.0


@dataclass(frozen=True)
class FeedLine:
    id: str
    ts: float
    text: str
    speaker: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "ts": self.ts, "text": self.text, "speaker": self.speaker}


def caption_id(ts: float, text: str, speaker: Optional[str] = None) -> str:
    """32-bit FNV-1a over "ts|speaker|text", rendered as cap_<hex>."""
    h = 2166136261
    for ch in f"{ts}|{speaker or ''}|{text}":
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return f"cap_{h:x}"


class CaptionBuffer:
    def __init__(
        self,
        capacity: int = 50,
        retention_seconds: float = 90.0,
        dedupe_memory: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        self.capacity = capacity
        self.retention_seconds = retention_seconds
        self.dedupe_memory = dedupe_memory
        self._clock = clock

        self._lines: List[FeedLine] = []
        self._recent_ids: Deque[str] = deque()
        self._recent_id_set: Set[str] = set()

        self.accepted_count = 0
        self.last_caption_at: Optional[float] = None
        self.bridge_ready_at: Optional[float] = None

    def add(self, text: str, ts: Optional[float] = None, speaker: Optional[str] = None) -> Optional[FeedLine]:
        text = (text or "").strip()
        if not text:
            return None
        now = self._clock()
        if ts is None:
            ts = now
        speaker = speaker or None

        line_id = caption_id(ts, text, speaker)
        if line_id in self._recent_id_set:
            return None

        self._recent_ids.append(line_id)
        self._recent_id_set.add(line_id)
        while len(self._recent_ids) > self.dedupe_memory:
            self._recent_id_set.discard(self._recent_ids.popleft())

        line = FeedLine(id=line_id, ts=ts, text=text, speaker=speaker)
        self.last_caption_at = now
        self.accepted_count += 1

        cutoff = now - self.retention_seconds
        kept = [l for l in self._lines + [line] if l.ts >= cutoff]
        self._lines = kept[-self.capacity:]
        return line

    def window(self, now: Optional[float] = None, window_seconds: float = 40.0) -> List[FeedLine]:
        if now is None:
            now = self._clock()
        cutoff = now - window_seconds
        return [l for l in self._lines if l.ts >= cutoff]

    def recent(self, n: int) -> List[FeedLine]:
        if n <= 0:
            return []
        return self._lines[-n:]

    def lines(self) -> List[FeedLine]:
        return list(self._lines)

    def clear(self):
        self._lines = []
        self._recent_ids.clear()
        self._recent_id_set.clear()

    def mark_bridge_ready(self, at: Optional[float] = None):
        self.bridge_ready_at = self._clock() if at is None else at

    def liveness(self, now: Optional[float] = None) -> dict:
        if now is None:
            now = self._clock()
        captions_age = None if self.last_caption_at is None else now - self.last_caption_at
        bridge_age = None if self.bridge_ready_at is None else now - self.bridge_ready_at

        if captions_age is None:
            captions = "waiting"
        elif captions_age <= CAPTIONS_CONNECTED_SECONDS:
            captions = "connected"
        else:
            captions = "stale"

        return {
            "captions": captions,
            "captions_age_seconds": None if captions_age is None else round(captions_age, 1),
            "bridge_ok": bridge_age is not None and bridge_age <= BRIDGE_OK_SECONDS,
            "bridge_age_seconds": None if bridge_age is None else round(bridge_age, 1),
            "lines": len(self._lines),
        }

    def __len__(self) -> int:
        return len(self._lines)
