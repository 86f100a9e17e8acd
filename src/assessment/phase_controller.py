"""
Phase Controller: decides the next interview phase after each turn.

Decision order:
1. A completed session stays complete.
2. The provider-declared phase is taken when it is known and not backward.
   Backward declarations keep the current phase.
3. A missing or unknown declaration is inferred from the reply intent.
4. Recommendations arriving while the phase is still open are resolved by
   the configured RecommendationPhasePolicy.
5. The reality-check guard forces completion once the phase has run for
   REALITY_CHECK_TURN_LIMIT messages, whatever the provider declared.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.assessment.phases import PhaseFlow, SessionPhase
from src.assessment.response_validator import ValidatedResponse
from src.common.config import Config

logger = logging.getLogger(__name__)


class RecommendationPhasePolicy(str, Enum):
    """What to do when a reply carries recommendations but leaves the phase open."""
    KEEP_PHASE = "keep_phase"
    USER_SIGNAL = "user_signal"
    COMPLETE = "complete"


# Phrases (accent-folded, lowercase) that mean "show me my final results"
COMPLETION_SIGNALS = (
    "ver resultados finales",
    "los resultados finales",
    "me gustaria ver los resultados",
    "quiero ver mis resultados",
    "quiero los resultados",
    "ver los resultados",
    "estoy satisfecho",
    "estoy satisfecha",
    "terminar",
    "ya decidi",
    "resultados finales",
    "show my results",
    "see my results",
    "final results",
    "i'm done",
    "i am done",
)

# Whole words only: "terminar" must not match inside "determinar"
_COMPLETION_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(signal) for signal in COMPLETION_SIGNALS) + r")\b"
)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def has_completion_signal(message: Optional[str]) -> bool:
    """True when the user's message asks to finish and see results."""
    if not message:
        return False
    return _COMPLETION_PATTERN.search(_fold(message)) is not None


@dataclass
class PhaseTransition:
    """Outcome of one phase decision."""

    previous_phase: SessionPhase
    next_phase: SessionPhase
    forced: bool = False
    reason: str = ""

    @property
    def changed(self) -> bool:
        return self.next_phase is not self.previous_phase


class PhaseController:
    """
    Forward-only phase state machine.

    Attributes:
        flow: Phase flow variant (six_phase or five_phase)
        turn_limit: Messages allowed in reality_check before forced completion
        policy: Resolution for recommendations with a still-open phase
    """

    def __init__(
        self,
        flow: Optional[PhaseFlow] = None,
        turn_limit: Optional[int] = None,
        policy: Optional[RecommendationPhasePolicy] = None,
    ):
        self.flow = flow or PhaseFlow(Config.PHASE_FLOW)
        self.turn_limit = turn_limit if turn_limit is not None else Config.REALITY_CHECK_TURN_LIMIT
        self.policy = RecommendationPhasePolicy(policy or Config.RECOMMENDATION_PHASE_POLICY)

    def advance(
        self,
        current_phase: SessionPhase,
        validated_output: ValidatedResponse,
        turn_count: int,
        phase_entry_turn: Optional[int] = None,
        last_user_message: Optional[str] = None,
    ) -> SessionPhase:
        """Return the phase the session moves to after this turn."""
        return self.evaluate(
            current_phase, validated_output, turn_count, phase_entry_turn, last_user_message
        ).next_phase

    def evaluate(
        self,
        current_phase: SessionPhase,
        validated_output: ValidatedResponse,
        turn_count: int,
        phase_entry_turn: Optional[int] = None,
        last_user_message: Optional[str] = None,
    ) -> PhaseTransition:
        """
        Decide the next phase and explain the decision.

        Args:
            current_phase: Phase the session is in
            validated_output: Validated provider reply for this turn
            turn_count: Messages in the history, this turn included
            phase_entry_turn: History length when reality_check was entered
            last_user_message: Text of the user's latest message

        Returns:
            PhaseTransition with the next phase and whether it was forced
        """
        current = self.flow.normalize(current_phase) or current_phase

        if self.flow.is_terminal(current):
            return PhaseTransition(current, current, reason="session already complete")

        candidate, reason = self._declared_or_inferred(current, validated_output)
        candidate, reason = self._apply_recommendation_policy(
            candidate, reason, validated_output, last_user_message
        )

        if self._reality_check_exhausted(current, turn_count, phase_entry_turn):
            if not self.flow.is_terminal(candidate):
                logger.info(
                    f"Reality check ran {turn_count - phase_entry_turn} messages "
                    f"(limit {self.turn_limit}), forcing completion over '{candidate.value}'"
                )
                return PhaseTransition(current, self.flow.terminal, forced=True, reason="reality check turn limit")

        if candidate is not current:
            logger.info(f"Phase transition: {current.value} -> {candidate.value} ({reason})")
        return PhaseTransition(current, candidate, reason=reason)

    def _declared_or_inferred(self, current: SessionPhase, output: ValidatedResponse):
        declared = self.flow.normalize(output.next_phase)
        if declared is not None:
            if self.flow.can_transition(current, declared):
                return declared, "declared by provider"
            logger.warning(f"Ignoring backward phase declaration {current.value} -> {declared.value}")
            return current, "backward declaration ignored"

        if output.intent == "completion_check" and self.flow.is_late_stage(current):
            return current, "completion check, staying in phase"

        if output.has_recommendations and output.intent == "recommendation":
            return self.flow.terminal, "recommendations without phase"

        default = self.flow.exploration
        if self.flow.can_transition(current, default):
            return default, "phase missing, defaulting to exploration"
        return current, "phase missing, keeping current phase"

    def _apply_recommendation_policy(
        self,
        candidate: SessionPhase,
        reason: str,
        output: ValidatedResponse,
        last_user_message: Optional[str],
    ):
        if not output.has_recommendations:
            return candidate, reason
        if candidate in (SessionPhase.FINAL_RESULTS, SessionPhase.COMPLETE):
            return candidate, reason

        if self.policy is RecommendationPhasePolicy.COMPLETE:
            return self.flow.terminal, "recommendations present (policy: complete)"
        if self.policy is RecommendationPhasePolicy.USER_SIGNAL and has_completion_signal(last_user_message):
            return self.flow.terminal, "user asked for final results"
        return candidate, reason

    def _reality_check_exhausted(
        self,
        current: SessionPhase,
        turn_count: int,
        phase_entry_turn: Optional[int],
    ) -> bool:
        if current is not SessionPhase.REALITY_CHECK or phase_entry_turn is None:
            return False
        return turn_count - phase_entry_turn >= self.turn_limit
