from typing import Dict, Optional


class CooldownRegistry:
    """Per-card suppression deadlines. Expired entries behave as absent."""

    def __init__(self):
        self._until: Dict[str, float] = {}

    def suppress(self, key: str, seconds: float, now: float) -> float:
        until = now + seconds
        self._until[key] = until
        return until

    def is_active(self, key: str, now: float) -> bool:
        until = self._until.get(key)
        return until is not None and until > now

    def until(self, key: str) -> Optional[float]:
        return self._until.get(key)

    def as_dict(self, now: Optional[float] = None) -> Dict[str, float]:
        if now is None:
            return dict(self._until)
        return {k: v for k, v in self._until.items() if v > now}

    def clear(self):
        self._until.clear()

    def __len__(self) -> int:
        return len(self._until)
