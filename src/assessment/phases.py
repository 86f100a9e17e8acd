"""
Interview phases and the forward-only transition table.

Two flow variants share one enumeration:
- six_phase: greeting → exploration → career_matching → reality_check → final_results → complete
- five_phase: greeting → exploration → career_matching → reality_check → complete

Upstream prompts used several label sets over time; PHASE_ALIASES maps them
onto the canonical enumeration.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class SessionPhase(str, Enum):
    """Interview phases in path order."""
    GREETING = "greeting"
    EXPLORATION = "exploration"
    CAREER_MATCHING = "career_matching"
    REALITY_CHECK = "reality_check"
    FINAL_RESULTS = "final_results"
    COMPLETE = "complete"


PHASE_FLOW_VERSIONS: Dict[str, Tuple[SessionPhase, ...]] = {
    "six_phase": (
        SessionPhase.GREETING,
        SessionPhase.EXPLORATION,
        SessionPhase.CAREER_MATCHING,
        SessionPhase.REALITY_CHECK,
        SessionPhase.FINAL_RESULTS,
        SessionPhase.COMPLETE,
    ),
    "five_phase": (
        SessionPhase.GREETING,
        SessionPhase.EXPLORATION,
        SessionPhase.CAREER_MATCHING,
        SessionPhase.REALITY_CHECK,
        SessionPhase.COMPLETE,
    ),
}

PHASE_ALIASES: Dict[str, SessionPhase] = {
    "enhanced_exploration": SessionPhase.EXPLORATION,
    "assessment": SessionPhase.EXPLORATION,
    "recommendation": SessionPhase.CAREER_MATCHING,
    "recommendations": SessionPhase.CAREER_MATCHING,
    "career_exploration": SessionPhase.REALITY_CHECK,
    "results": SessionPhase.FINAL_RESULTS,
    "completed": SessionPhase.COMPLETE,
    "done": SessionPhase.COMPLETE,
}

# Phases in which the deterministic career rankings are (re)computed
MATCHING_PHASES: FrozenSet[SessionPhase] = frozenset({
    SessionPhase.CAREER_MATCHING,
    SessionPhase.FINAL_RESULTS,
    SessionPhase.COMPLETE,
})


class PhaseFlow:
    """
    One versioned linear phase path with its transition table.

    Each phase may transition to itself or to any later phase; the table is
    built and checked when the flow is constructed.
    """

    def __init__(self, version: str = "six_phase"):
        if version not in PHASE_FLOW_VERSIONS:
            raise ValueError(f"Unknown phase flow version: {version}")
        self.version = version
        self.phases: Tuple[SessionPhase, ...] = PHASE_FLOW_VERSIONS[version]
        self._order = {phase: index for index, phase in enumerate(self.phases)}
        self.transitions: Dict[SessionPhase, FrozenSet[SessionPhase]] = {
            phase: frozenset(self.phases[index:]) for index, phase in enumerate(self.phases)
        }
        self._check()

    def _check(self) -> None:
        if self.phases[0] is not SessionPhase.GREETING:
            raise ValueError(f"{self.version}: greeting must be the initial phase")
        if self.phases[-1] is not SessionPhase.COMPLETE:
            raise ValueError(f"{self.version}: complete must be the terminal phase")
        if len(set(self.phases)) != len(self.phases):
            raise ValueError(f"{self.version}: duplicate phase in flow")
        if self.transitions[SessionPhase.COMPLETE] != frozenset({SessionPhase.COMPLETE}):
            raise ValueError(f"{self.version}: complete must not have outgoing transitions")

    @property
    def initial(self) -> SessionPhase:
        return self.phases[0]

    @property
    def terminal(self) -> SessionPhase:
        return self.phases[-1]

    @property
    def exploration(self) -> SessionPhase:
        """Earliest exploration-equivalent phase (default when a reply omits its phase)."""
        return SessionPhase.EXPLORATION

    def normalize(self, phase: Optional[SessionPhase]) -> Optional[SessionPhase]:
        """Map a phase onto this flow (final_results collapses to complete in five_phase)."""
        if phase is None or phase in self._order:
            return phase
        if phase is SessionPhase.FINAL_RESULTS:
            return SessionPhase.COMPLETE
        return None

    def index(self, phase: SessionPhase) -> int:
        normalized = self.normalize(phase)
        if normalized is None:
            raise ValueError(f"Phase {phase} is not part of flow {self.version}")
        return self._order[normalized]

    def can_transition(self, current: SessionPhase, target: SessionPhase) -> bool:
        current_phase = self.normalize(current)
        target_phase = self.normalize(target)
        if current_phase is None or target_phase is None:
            return False
        return target_phase in self.transitions[current_phase]

    def is_late_stage(self, phase: SessionPhase) -> bool:
        """career_matching and everything after it."""
        return self.index(phase) >= self.index(SessionPhase.CAREER_MATCHING)

    def is_terminal(self, phase: SessionPhase) -> bool:
        return self.normalize(phase) is self.terminal


def parse_phase(value: object) -> Optional[SessionPhase]:
    """
    Parse a provider-declared phase label.

    Returns None for missing, non-string or unknown labels (including labels
    truncated mid-token such as "career_match").
    """
    if not isinstance(value, str):
        return None
    label = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not label:
        return None
    try:
        return SessionPhase(label)
    except ValueError:
        return PHASE_ALIASES.get(label)


# Fail at import time if a registered flow is malformed
for _version in PHASE_FLOW_VERSIONS:
    PhaseFlow(_version)
