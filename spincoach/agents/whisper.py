import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from spincoach.agents.spin_phase import SpinPhase

STATIC_TIPS: Dict[SpinPhase, List[str]] = {
    SpinPhase.SITUATION: [
        "👂 Poslouchej víc než mluvíš",
        "📝 Zapisuj si klíčové info",
        "🤔 Ptej se \"Jak to teď funguje?\"",
    ],
    SpinPhase.PROBLEM: [
        "🎯 Hledej bolest, ne přání",
        "❓ \"Co vás na tom trápí nejvíc?\"",
        "⏸️ Nech ticho pracovat",
    ],
    SpinPhase.IMPLICATION: [
        "💰 Propoj problém s penězi",
        "⚡ \"Co to znamená pro tým?\"",
        "📊 Zeptej se na čísla",
    ],
    SpinPhase.PAYOFF: [
        "✨ Nech klienta popsat řešení",
        "🚀 \"Jak by vypadal ideální stav?\"",
        "🤝 Shrň a zeptej se na další krok",
    ],
}


def static_tip(phase: SpinPhase, index: int = 0) -> str:
    tips = STATIC_TIPS[phase]
    return tips[index % len(tips)]


class WhisperSlot:
    """Single visible whisper with a time-to-live.

    Showing a new whisper replaces the current one and restarts the timer.
    `on_expire` is awaited when a whisper times out on its own.
    """

    def __init__(self, ttl: float = 8.0, on_expire: Optional[Callable[[], Awaitable[None]]] = None):
        self.ttl = ttl
        self.on_expire = on_expire
        self.current: Optional[dict] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def visible(self) -> bool:
        return self.current is not None

    def show(self, text: str, priority: str = "medium") -> dict:
        self.cancel()
        self.current = {"text": text, "priority": priority}
        self._task = asyncio.create_task(self._expire_after(self.ttl))
        return self.current

    async def _expire_after(self, delay: float):
        await asyncio.sleep(delay)
        self.current = None
        self._task = None
        if self.on_expire:
            await self.on_expire()

    def clear(self):
        self.cancel()
        self.current = None

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
