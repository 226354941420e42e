"""Shared fakes for coaching tests."""
import asyncio

import pytest

from spincoach.config import CoachSettings


class ManualClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeWSManager:
    def __init__(self):
        self.sent = []

    async def send(self, session_id: str, data: dict):
        self.sent.append(data)

    def of_type(self, msg_type: str):
        return [m for m in self.sent if m.get("type") == msg_type]


class FakeAdvisor:
    """Records requests; optionally blocks until released or raises."""

    def __init__(self, response=None, error: Exception = None, block: bool = False):
        self.response = response
        self.error = error
        self.calls = []
        self.release = asyncio.Event() if block else None

    async def advise(self, request):
        self.calls.append(request)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ws():
    return FakeWSManager()


@pytest.fixture
def settings():
    return CoachSettings(
        match_window_seconds=40,
        feed_capacity=50,
        feed_retention_seconds=90,
        cooldown_use_seconds=90,
        cooldown_dismiss_seconds=45,
        cooldown_hotkey_seconds=75,
        cooldown_tip_seconds=60,
        min_interval_seconds=8,
        confidence_threshold=0.35,
        advisory_timeout_seconds=5,
        transcript_window_lines=14,
        transcript_max_chars=4000,
        recap_lines=4,
        recap_max_chars=900,
        whisper_ttl_seconds=8,
    )
