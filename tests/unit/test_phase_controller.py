"""
Unit tests for src/assessment/phase_controller.py

Tests cover:
- Declared, backward and missing phase labels
- Intent-based inference (completion_check, recommendation)
- The three recommendation phase policies
- Forced completion after the reality-check turn limit
- Completion signal detection in user messages
"""

import pytest

from src.assessment.phase_controller import (
    PhaseController,
    RecommendationPhasePolicy,
    has_completion_signal,
)
from src.assessment.phases import PhaseFlow, SessionPhase
from src.assessment.response_validator import ValidatedResponse
from src.assessment.types import CareerRecommendation


def _output(next_phase=None, intent=None, recommendations=False):
    recs = [CareerRecommendation(career_id="1", display_name="Ingeniería Civil", confidence=80)] if recommendations else []
    return ValidatedResponse(message="ok", intent=intent, next_phase=next_phase, recommendations=recs)


@pytest.fixture
def controller():
    return PhaseController(PhaseFlow("six_phase"), turn_limit=12, policy=RecommendationPhasePolicy.USER_SIGNAL)


# ===== TESTS: Declared Phase =====

class TestDeclaredPhase:
    """Tests for provider-declared phases."""

    def test_forward_declaration_is_taken(self, controller):
        phase = controller.advance(SessionPhase.EXPLORATION, _output(SessionPhase.CAREER_MATCHING), 8)
        assert phase is SessionPhase.CAREER_MATCHING

    def test_same_phase_declaration(self, controller):
        phase = controller.advance(SessionPhase.EXPLORATION, _output(SessionPhase.EXPLORATION), 4)
        assert phase is SessionPhase.EXPLORATION

    def test_backward_declaration_keeps_current(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.EXPLORATION), 20, 18)
        assert transition.next_phase is SessionPhase.REALITY_CHECK
        assert transition.changed is False
        assert "backward" in transition.reason

    def test_complete_is_absorbing(self, controller):
        transition = controller.evaluate(SessionPhase.COMPLETE, _output(SessionPhase.EXPLORATION), 40)
        assert transition.next_phase is SessionPhase.COMPLETE
        assert transition.forced is False


# ===== TESTS: Missing Phase =====

class TestMissingPhase:
    """Tests for replies without a usable phase label."""

    def test_defaults_to_exploration_from_greeting(self, controller):
        assert controller.advance(SessionPhase.GREETING, _output(), 2) is SessionPhase.EXPLORATION

    def test_never_moves_backward_to_exploration(self, controller):
        assert controller.advance(SessionPhase.CAREER_MATCHING, _output(), 14) is SessionPhase.CAREER_MATCHING

    def test_completion_check_stays_in_late_stage(self, controller):
        phase = controller.advance(SessionPhase.CAREER_MATCHING, _output(intent="completion_check"), 14)
        assert phase is SessionPhase.CAREER_MATCHING

    def test_recommendation_intent_without_phase_completes(self, controller):
        output = _output(intent="recommendation", recommendations=True)
        assert controller.advance(SessionPhase.CAREER_MATCHING, output, 14) is SessionPhase.COMPLETE


# ===== TESTS: Recommendation Policy =====

class TestRecommendationPolicy:
    """Tests for recommendations arriving with a still-open phase."""

    def test_keep_phase(self):
        controller = PhaseController(PhaseFlow("six_phase"), turn_limit=12, policy=RecommendationPhasePolicy.KEEP_PHASE)
        output = _output(SessionPhase.CAREER_MATCHING, recommendations=True)
        phase = controller.advance(
            SessionPhase.CAREER_MATCHING, output, 14, last_user_message="quiero ver mis resultados"
        )
        assert phase is SessionPhase.CAREER_MATCHING

    def test_complete_policy(self):
        controller = PhaseController(PhaseFlow("six_phase"), turn_limit=12, policy="complete")
        output = _output(SessionPhase.CAREER_MATCHING, recommendations=True)
        assert controller.advance(SessionPhase.CAREER_MATCHING, output, 14) is SessionPhase.COMPLETE

    def test_user_signal_without_signal(self, controller):
        output = _output(SessionPhase.CAREER_MATCHING, recommendations=True)
        phase = controller.advance(SessionPhase.CAREER_MATCHING, output, 14, last_user_message="cuéntame más")
        assert phase is SessionPhase.CAREER_MATCHING

    def test_user_signal_with_signal(self, controller):
        output = _output(SessionPhase.CAREER_MATCHING, recommendations=True)
        phase = controller.advance(
            SessionPhase.CAREER_MATCHING, output, 14, last_user_message="Me gustaría ver los resultados finales"
        )
        assert phase is SessionPhase.COMPLETE

    def test_policy_ignored_without_recommendations(self):
        controller = PhaseController(PhaseFlow("six_phase"), turn_limit=12, policy=RecommendationPhasePolicy.COMPLETE)
        assert controller.advance(SessionPhase.EXPLORATION, _output(SessionPhase.EXPLORATION), 6) is SessionPhase.EXPLORATION

    def test_defaults_come_from_config(self):
        controller = PhaseController()
        assert controller.turn_limit == 12
        assert controller.policy is RecommendationPhasePolicy.USER_SIGNAL


# ===== TESTS: Reality Check Guard =====

class TestRealityCheckGuard:
    """Tests for forced completion in reality_check."""

    def test_forced_at_turn_limit(self, controller):
        """Entered at 20 messages; the 12th message since entry forces completion."""
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.REALITY_CHECK), 32, 20)
        assert transition.next_phase is SessionPhase.COMPLETE
        assert transition.forced is True

    def test_not_forced_before_limit(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.REALITY_CHECK), 31, 20)
        assert transition.next_phase is SessionPhase.REALITY_CHECK
        assert transition.forced is False

    def test_guard_overrides_backward_declaration(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.EXPLORATION), 40, 20)
        assert transition.next_phase is SessionPhase.COMPLETE
        assert transition.forced is True

    def test_final_results_declaration_is_still_forced(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.FINAL_RESULTS), 32, 20)
        assert transition.next_phase is SessionPhase.COMPLETE

    def test_declared_complete_is_not_marked_forced(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(SessionPhase.COMPLETE), 32, 20)
        assert transition.next_phase is SessionPhase.COMPLETE
        assert transition.forced is False

    def test_guard_needs_entry_turn(self, controller):
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(), 50, None)
        assert transition.next_phase is SessionPhase.REALITY_CHECK

    def test_guard_only_applies_in_reality_check(self, controller):
        transition = controller.evaluate(SessionPhase.CAREER_MATCHING, _output(SessionPhase.CAREER_MATCHING), 50, 10)
        assert transition.next_phase is SessionPhase.CAREER_MATCHING

    def test_five_phase_flow_forces_complete(self):
        controller = PhaseController(PhaseFlow("five_phase"), turn_limit=4, policy=RecommendationPhasePolicy.KEEP_PHASE)
        transition = controller.evaluate(SessionPhase.REALITY_CHECK, _output(), 14, 10)
        assert transition.next_phase is SessionPhase.COMPLETE
        assert transition.forced is True


# ===== TESTS: Completion Signals =====

class TestCompletionSignal:
    """Tests for has_completion_signal."""

    @pytest.mark.parametrize("message", [
        "Quiero ver mis resultados",
        "ya decidí, gracias",
        "ESTOY SATISFECHA con esto",
        "Can you show my results?",
    ])
    def test_detects_signal(self, message):
        assert has_completion_signal(message) is True

    @pytest.mark.parametrize("message", [
        None,
        "",
        "me gusta la biología",
        "¿qué resultados tiene la carrera?",
        "Quiero determinar qué carrera me conviene",
        "Me gustaría exterminar plagas en el campo",
    ])
    def test_no_signal(self, message):
        assert has_completion_signal(message) is False

    def test_signal_word_at_end_of_sentence(self):
        assert has_completion_signal("Ya quiero terminar.") is True

    def test_word_inside_longer_word_keeps_phase_open(self, controller):
        output = _output(SessionPhase.CAREER_MATCHING, recommendations=True)
        phase = controller.advance(
            SessionPhase.EXPLORATION, output, 6, last_user_message="Aún no sé, quiero determinar mi vocación"
        )
        assert phase is SessionPhase.CAREER_MATCHING
