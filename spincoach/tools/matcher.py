"""
Deterministic trigger scoring.

Maps a window of transcript lines to battlecards by substring matching on
normalized text. Multi-word triggers weigh more than single words, and a line
that hits two or more triggers of the same card earns a co-occurrence bonus.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional

from spincoach.tools.battlecards import Battlecard, CardLibrary
from spincoach.tools.normalize import normalize_for_match

if TYPE_CHECKING:
    from spincoach.memory.cooldowns import CooldownRegistry

PHRASE_WEIGHT = 5
WORD_WEIGHT = 3
CO_OCCURRENCE_BONUS = 2

CATEGORY_PRIORITY = {
    "security": 4,
    "next-step": 3,
    "objection": 2,
    "persona": 1,
}


@dataclass(frozen=True)
class MatchResult:
    card: Battlecard
    score: int

    @property
    def key(self) -> str:
        return self.card.key


@dataclass(frozen=True)
class Matches:
    best: Optional[MatchResult] = None
    alt: Optional[MatchResult] = None
    persona: Optional[MatchResult] = None


def category_priority(category: str) -> int:
    return CATEGORY_PRIORITY.get(category, 0)


def _line_texts(lines: Iterable) -> List[str]:
    # accepts FeedLine objects or plain strings
    return [getattr(line, "text", line) or "" for line in lines]


def score_card(card: Battlecard, lines: Iterable, library: Optional[CardLibrary] = None) -> int:
    triggers = library.triggers_for(card) if library is not None else card.triggers
    # aliases often repeat a card's own trigger; each normalized needle counts once
    prepared = {}
    for trigger in triggers:
        needle = normalize_for_match(trigger)
        if not needle or needle in prepared:
            continue
        prepared[needle] = PHRASE_WEIGHT if " " in trigger.strip() else WORD_WEIGHT

    score = 0
    for text in _line_texts(lines):
        haystack = normalize_for_match(text)
        if not haystack:
            continue
        hits = 0
        for needle, weight in prepared.items():
            if needle in haystack:
                hits += 1
                score += weight
        if hits >= 2:
            score += CO_OCCURRENCE_BONUS
    return score


def _rank(results: List[MatchResult]) -> List[MatchResult]:
    return sorted(results, key=lambda r: (-category_priority(r.card.category), -r.score, r.card.key))


def pick_top_matches(
    lines: Iterable,
    library: CardLibrary,
    cooldowns: Optional["CooldownRegistry"] = None,
    now: float = 0.0,
) -> Matches:
    """Score every eligible card and pick best, alternate and persona matches.

    Cards under an active cooldown are never considered.
    """
    texts = _line_texts(lines)
    persona: List[MatchResult] = []
    others: List[MatchResult] = []

    for card in library:
        if cooldowns is not None and cooldowns.is_active(card.key, now):
            continue
        score = score_card(card, texts, library)
        if score <= 0:
            continue
        result = MatchResult(card=card, score=score)
        if card.category == "persona":
            persona.append(result)
        else:
            others.append(result)

    others = _rank(others)
    persona = _rank(persona)

    best = others[0] if others else None
    alt = None
    if best is not None and len(others) > 1:
        candidate = others[1]
        if candidate.score >= best.score - 2 and candidate.key != best.key:
            alt = candidate

    return Matches(best=best, alt=alt, persona=persona[0] if persona else None)
