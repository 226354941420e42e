"""Configuration for the coaching engine, read from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# .env lives in the repository root, one level above this package
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        print(f"Invalid value for {name}, using default {default}")
        return default


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        print(f"Invalid value for {name}, using default {default}")
        return default


def _list(name: str, default: str = "") -> List[str]:
    out = []
    for item in (os.getenv(name, default) or "").split(","):
        item = item.strip().rstrip("/")
        if item:
            out.append(item)
    return out


class Config:
    """Application configuration from environment variables."""

    # Advisory service
    ADVISOR: str = os.getenv("ADVISOR", "gemini").strip().lower()  # gemini | http | none
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    ADVISORY_URL: Optional[str] = os.getenv("ADVISORY_URL")
    ADVISORY_API_KEY: Optional[str] = os.getenv("ADVISORY_API_KEY")

    # Caption capture source
    CAPTION_SOURCE: str = os.getenv("CAPTION_SOURCE", "echo-meet-coach")
    ALLOWED_ORIGINS: List[str] = _list("ALLOWED_ORIGINS")
    EVENT_QUEUE_SIZE: int = _int("EVENT_QUEUE_SIZE", 256)

    # Feed buffer and matching
    MATCH_WINDOW_SECONDS: float = _float("MATCH_WINDOW_SECONDS", 40.0)
    FEED_CAPACITY: int = _int("FEED_CAPACITY", 50)
    FEED_RETENTION_SECONDS: float = _float("FEED_RETENTION_SECONDS", 90.0)

    # Cooldowns
    COOLDOWN_USE_SECONDS: float = _float("COOLDOWN_USE_SECONDS", 90.0)
    COOLDOWN_DISMISS_SECONDS: float = _float("COOLDOWN_DISMISS_SECONDS", 45.0)
    COOLDOWN_HOTKEY_SECONDS: float = _float("COOLDOWN_HOTKEY_SECONDS", 75.0)
    COOLDOWN_TIP_SECONDS: float = _float("COOLDOWN_TIP_SECONDS", 60.0)

    # Advisory orchestration
    ADVISORY_MIN_INTERVAL_SECONDS: float = _float("ADVISORY_MIN_INTERVAL_SECONDS", 8.0)
    ADVISORY_CONFIDENCE_THRESHOLD: float = _float("ADVISORY_CONFIDENCE_THRESHOLD", 0.35)
    ADVISORY_TIMEOUT_SECONDS: float = _float("ADVISORY_TIMEOUT_SECONDS", 20.0)
    TRANSCRIPT_WINDOW_LINES: int = _int("TRANSCRIPT_WINDOW_LINES", 14)
    TRANSCRIPT_MAX_CHARS: int = _int("TRANSCRIPT_MAX_CHARS", 4000)
    RECAP_LINES: int = _int("RECAP_LINES", 4)
    RECAP_MAX_CHARS: int = _int("RECAP_MAX_CHARS", 900)
    WHISPER_TTL_SECONDS: float = _float("WHISPER_TTL_SECONDS", 8.0)

    @classmethod
    def validate(cls) -> list[str]:
        """Return a list of missing required settings for the selected advisor."""
        missing = []
        if cls.ADVISOR == "gemini" and not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY (required when ADVISOR=gemini)")
        if cls.ADVISOR == "http" and not cls.ADVISORY_URL:
            missing.append("ADVISORY_URL (required when ADVISOR=http)")
        if cls.ADVISOR not in ("gemini", "http", "none"):
            missing.append(f"ADVISOR must be gemini, http or none (got '{cls.ADVISOR}')")
        return missing


@dataclass(frozen=True)
class CoachSettings:
    """Tuning values for a single coaching session.

    Defaults come from Config; tests construct this directly with overrides.
    """

    match_window_seconds: float = field(default_factory=lambda: Config.MATCH_WINDOW_SECONDS)
    feed_capacity: int = field(default_factory=lambda: Config.FEED_CAPACITY)
    feed_retention_seconds: float = field(default_factory=lambda: Config.FEED_RETENTION_SECONDS)
    cooldown_use_seconds: float = field(default_factory=lambda: Config.COOLDOWN_USE_SECONDS)
    cooldown_dismiss_seconds: float = field(default_factory=lambda: Config.COOLDOWN_DISMISS_SECONDS)
    cooldown_hotkey_seconds: float = field(default_factory=lambda: Config.COOLDOWN_HOTKEY_SECONDS)
    cooldown_tip_seconds: float = field(default_factory=lambda: Config.COOLDOWN_TIP_SECONDS)
    min_interval_seconds: float = field(default_factory=lambda: Config.ADVISORY_MIN_INTERVAL_SECONDS)
    confidence_threshold: float = field(default_factory=lambda: Config.ADVISORY_CONFIDENCE_THRESHOLD)
    advisory_timeout_seconds: float = field(default_factory=lambda: Config.ADVISORY_TIMEOUT_SECONDS)
    transcript_window_lines: int = field(default_factory=lambda: Config.TRANSCRIPT_WINDOW_LINES)
    transcript_max_chars: int = field(default_factory=lambda: Config.TRANSCRIPT_MAX_CHARS)
    recap_lines: int = field(default_factory=lambda: Config.RECAP_LINES)
    recap_max_chars: int = field(default_factory=lambda: Config.RECAP_MAX_CHARS)
    whisper_ttl_seconds: float = field(default_factory=lambda: Config.WHISPER_TTL_SECONDS)
