"""
SPIN discovery phases and the per-session phase clock.

Phases move situation -> problem -> implication -> payoff, but any phase may
be entered from any other, either manually by the seller or from an advisory
response. Elapsed counters are whole seconds advanced by a 1 Hz tick.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class SpinPhase(str, Enum):
    SITUATION = "situation"
    PROBLEM = "problem"
    IMPLICATION = "implication"
    PAYOFF = "payoff"


PHASE_ORDER = (SpinPhase.SITUATION, SpinPhase.PROBLEM, SpinPhase.IMPLICATION, SpinPhase.PAYOFF)

PHASE_ALIASES = {
    "situation": SpinPhase.SITUATION,
    "s": SpinPhase.SITUATION,
    "problem": SpinPhase.PROBLEM,
    "p": SpinPhase.PROBLEM,
    "implication": SpinPhase.IMPLICATION,
    "i": SpinPhase.IMPLICATION,
    "payoff": SpinPhase.PAYOFF,
    "need-payoff": SpinPhase.PAYOFF,
    "need_payoff": SpinPhase.PAYOFF,
    "needpayoff": SpinPhase.PAYOFF,
    "n": SpinPhase.PAYOFF,
}

PHASE_LABELS = {
    SpinPhase.SITUATION: "Situace",
    SpinPhase.PROBLEM: "Problém",
    SpinPhase.IMPLICATION: "Důsledky",
    SpinPhase.PAYOFF: "Řešení",
}


def parse_phase(value) -> Optional[SpinPhase]:
    """Resolve a phase name, alias or S/P/I/N letter. Anything else is None."""
    if isinstance(value, SpinPhase):
        return value
    if value is None:
        return None
    return PHASE_ALIASES.get(str(value).strip().lower())


@dataclass
class PhaseState:
    current_phase: SpinPhase = SpinPhase.SITUATION
    phase_elapsed_seconds: int = 0
    total_elapsed_seconds: int = 0
    per_phase_elapsed_seconds: Dict[SpinPhase, int] = field(
        default_factory=lambda: {p: 0 for p in PHASE_ORDER}
    )

    def to_dict(self) -> dict:
        return {
            "phase": self.current_phase.value,
            "label": PHASE_LABELS[self.current_phase],
            "phase_elapsed_seconds": self.phase_elapsed_seconds,
            "total_elapsed_seconds": self.total_elapsed_seconds,
            "per_phase_elapsed_seconds": {p.value: s for p, s in self.per_phase_elapsed_seconds.items()},
        }


class PhaseMachine:
    def __init__(self):
        self._state = PhaseState()
        self.live = False

    @property
    def current(self) -> SpinPhase:
        return self._state.current_phase

    def start(self):
        self._state = PhaseState()
        self.live = True

    def stop(self):
        self.live = False

    def tick(self) -> bool:
        if not self.live:
            return False
        s = self._state
        s.total_elapsed_seconds += 1
        s.phase_elapsed_seconds += 1
        s.per_phase_elapsed_seconds[s.current_phase] += 1
        return True

    def set_phase(self, phase, source: str = "manual") -> bool:
        """Switch phase. Returns True only if the phase actually changed."""
        target = parse_phase(phase)
        if target is None:
            raise ValueError(f"Unknown SPIN phase: {phase!r}")
        if target == self._state.current_phase:
            return False
        self._state.current_phase = target
        self._state.phase_elapsed_seconds = 0
        print(f"SPIN phase -> {target.value} ({source})")
        return True

    def snapshot(self) -> PhaseState:
        s = self._state
        return PhaseState(
            current_phase=s.current_phase,
            phase_elapsed_seconds=s.phase_elapsed_seconds,
            total_elapsed_seconds=s.total_elapsed_seconds,
            per_phase_elapsed_seconds=dict(s.per_phase_elapsed_seconds),
        )

    def stage_timers(self) -> Dict[str, int]:
        return {p.value: s for p, s in self._state.per_phase_elapsed_seconds.items()}
