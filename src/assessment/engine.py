"""
Assessment Engine: runs one interview turn end to end.

Per user turn:
    load session -> build provider context -> ProviderGateway (retry)
    -> ResponseValidator -> ScoreAggregator -> PhaseController
    -> CareerMatcher (when the phase needs rankings) -> save session

Every step runs sequentially. The session store is the single source of
truth: a record is loaded at the start of a call and written back whole at
the end, so a failed turn leaves the stored session untouched.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from src.assessment.career_matcher import CareerMatch, CareerMatcher, MatchFilters
from src.assessment.phase_controller import PhaseController
from src.assessment.phases import MATCHING_PHASES, SessionPhase, parse_phase
from src.assessment.prompts import (
    CLARIFICATION_MESSAGE,
    CLOSING_SUMMARY_INSTRUCTION,
    FALLBACK_QUESTION,
    GREETING_MESSAGE,
    REALITY_CHECK_START_INSTRUCTION,
    SESSION_START_INSTRUCTION,
)
from src.assessment.response_validator import ResponseValidator, ValidatedResponse
from src.assessment.scoring import (
    ScoreAggregator,
    describe_profile,
    normalize_scores,
    riasec_code,
    top_types,
)
from src.assessment.types import (
    CareerCatalogEntry,
    CareerRecommendation,
    DiscriminatingQuestion,
    ProviderContext,
    ProviderRequest,
    RiasecVector,
    SessionRecord,
    utc_now,
)
from src.common.config import Config
from src.common.error_handling import (
    ParseError,
    ProviderError,
    SessionClosedError,
    SessionNotFoundError,
    log_on_exception,
)
from src.common.llm_config import Operation
from src.common.logger import get_logger
from src.common.repositories import CatalogRepositoryInterface, SessionRepositoryInterface
from src.services.provider_gateway import ProviderGateway

logger = logging.getLogger(__name__)

# Session metadata keys
GREETING_SENT_KEY = "greeting_sent"
REALITY_CHECK_ENTRY_KEY = "reality_check_entry_turn"
STRUCTURED_ANSWERS_KEY = "structured_answers"
FORCED_COMPLETION_KEY = "forced_completion"


@dataclass
class TurnResult:
    """Outcome of one processed user message."""

    session: SessionRecord
    message: str
    previous_phase: SessionPhase
    phase: SessionPhase
    forced_completion: bool = False
    recommendations: List[CareerRecommendation] = field(default_factory=list)
    rankings: List[CareerMatch] = field(default_factory=list)
    suggested_follow_up: List[str] = field(default_factory=list)
    rejected_career_ids: List[str] = field(default_factory=list)
    all_recommendations_rejected: bool = False

    @property
    def is_complete(self) -> bool:
        return self.phase is SessionPhase.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session.session_id,
            "message": self.message,
            "previous_phase": self.previous_phase.value,
            "phase": self.phase.value,
            "forced_completion": self.forced_completion,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "rankings": [m.to_dict() for m in self.rankings],
            "suggested_follow_up": list(self.suggested_follow_up),
            "riasec_scores": self.session.riasec_scores.to_dict(),
            "is_complete": self.is_complete,
        }


class AssessmentEngine:
    """
    Orchestrates the conversational vocational interview.

    Attributes:
        gateway: Provider gateway used for every model call
        sessions: Session store
        catalog: Authoritative career catalog
        controller: Phase state machine
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        sessions: SessionRepositoryInterface,
        catalog: CatalogRepositoryInterface,
        controller: Optional[PhaseController] = None,
        validator: Optional[ResponseValidator] = None,
        aggregator: Optional[ScoreAggregator] = None,
        matcher: Optional[CareerMatcher] = None,
        match_limit: Optional[int] = None,
        match_filters: Optional[MatchFilters] = None,
        turn_timeout_seconds: Optional[float] = None,
    ):
        self.gateway = gateway
        self.sessions = sessions
        self.catalog = catalog
        self.controller = controller or PhaseController()
        self.validator = validator or ResponseValidator()
        self.aggregator = aggregator or ScoreAggregator()
        self.matcher = matcher or CareerMatcher()
        self.match_limit = match_limit if match_limit is not None else Config.MATCH_LIMIT
        self.match_filters = match_filters
        self.turn_timeout_seconds = (
            turn_timeout_seconds if turn_timeout_seconds is not None else Config.TURN_TIMEOUT_SECONDS
        )

    # ===== SESSION LIFECYCLE =====

    async def start_session(self, session_id: Optional[str] = None, user_id: Optional[str] = None) -> SessionRecord:
        """
        Create a session and record its greeting.

        Calling this again for a session that already greeted the user returns
        the stored session without a second greeting.
        """
        session_id = session_id or str(uuid.uuid4())
        record = self.sessions.get(session_id)
        if record is not None and record.metadata.get(GREETING_SENT_KEY):
            return record
        if record is None:
            record = SessionRecord(session_id=session_id, user_id=user_id)

        log = get_logger(__name__, session_id=session_id, component="engine")
        careers = self.catalog.list_careers()
        request = self._request(record, careers, instruction=SESSION_START_INSTRUCTION)

        raw = await self.gateway.call(Operation.CONVERSATION_TURN, request, fallback=None)
        validated = None
        if raw is not None:
            try:
                validated = self.validator.validate_turn(raw, self._known(careers))
            except ParseError as e:
                log.warning(f"Greeting reply unusable, using default greeting: {e}")

        if validated is None:
            validated = ValidatedResponse(message=GREETING_MESSAGE, intent="question")

        record.add_message("assistant", validated.message)
        record.phase = self.controller.advance(record.phase, validated, record.turn_count)
        record.metadata[GREETING_SENT_KEY] = True
        self._save(record)
        log.info(f"Session started (phase={record.phase.value})")
        return record

    async def process_message(self, session_id: str, text: str) -> TurnResult:
        """
        Process one user message.

        Raises:
            SessionNotFoundError: Unknown session
            SessionClosedError: Session already complete
            ProviderError: Provider exhausted (or the whole turn missed its deadline)
            ParseError: Reply could not be turned into a structured object.
                Its user_message holds CLARIFICATION_MESSAGE, the text to show
                the user instead of a reply.
        """
        try:
            if not self.turn_timeout_seconds or self.turn_timeout_seconds <= 0:
                return await self._process_message(session_id, text)
            return await asyncio.wait_for(self._process_message(session_id, text), self.turn_timeout_seconds)
        except asyncio.TimeoutError:
            raise ProviderError(
                f"Turn exceeded its {self.turn_timeout_seconds:g}s deadline",
                operation="process_message",
                retryable=True,
            )
        except ParseError as e:
            e.user_message = CLARIFICATION_MESSAGE
            raise

    async def _process_message(self, session_id: str, text: str) -> TurnResult:
        if not text or not text.strip():
            raise ValueError("Message text must not be empty")

        record = self._load_open(session_id)
        log = get_logger(__name__, session_id=session_id, component="engine")
        careers = self.catalog.list_careers()
        known = self._known(careers)
        previous_phase = record.phase

        record.add_message("user", text.strip())
        raw = await self.gateway.call(Operation.CONVERSATION_TURN, self._request(record, careers))
        validated = self.validator.validate_turn(raw, known)

        # turn_count includes the reply about to be appended
        transition = self.controller.evaluate(
            record.phase,
            validated,
            turn_count=record.turn_count + 1,
            phase_entry_turn=record.metadata.get(REALITY_CHECK_ENTRY_KEY),
            last_user_message=text,
        )

        rejected = [error.career_id for error in validated.validation_errors]
        if transition.forced:
            log.info("Reality check limit reached, requesting closing summary")
            validated = await self._closing_summary(record, careers)
            rejected.extend(error.career_id for error in validated.validation_errors)
            record.metadata[FORCED_COMPLETION_KEY] = True

        record.add_message("assistant", validated.message)
        self._apply(record, validated)
        self._enter_phase(record, transition.next_phase)
        rankings = self._refresh_rankings(record, careers)
        self._save(record)

        return TurnResult(
            session=record,
            message=validated.message,
            previous_phase=previous_phase,
            phase=record.phase,
            forced_completion=transition.forced,
            recommendations=list(validated.recommendations),
            rankings=rankings,
            suggested_follow_up=list(validated.suggested_follow_up),
            rejected_career_ids=rejected,
            all_recommendations_rejected=validated.all_recommendations_rejected,
        )

    async def transition_to_phase(self, session_id: str, target: Union[SessionPhase, str]) -> SessionRecord:
        """
        Move a session forward to a phase chosen by the host application.

        Entering reality_check fetches its opening question and records the
        phase-entry turn; repeating the call does neither twice.

        Raises:
            ValueError: Unknown phase or backward move
        """
        target_phase = target if isinstance(target, SessionPhase) else parse_phase(target)
        if target_phase is None:
            raise ValueError(f"Unknown phase: {target}")

        record = self._load_open(session_id)
        flow = self.controller.flow
        target_phase = flow.normalize(target_phase)
        if target_phase is record.phase:
            return record
        if not flow.can_transition(record.phase, target_phase):
            raise ValueError(f"Cannot move backward from {record.phase.value} to {target_phase.value}")

        careers = self.catalog.list_careers()
        log = get_logger(__name__, session_id=session_id, component="engine")
        log.info(f"Manual phase transition: {record.phase.value} -> {target_phase.value}")

        if target_phase is SessionPhase.REALITY_CHECK and REALITY_CHECK_ENTRY_KEY not in record.metadata:
            record.phase = target_phase
            request = self._request(record, careers, instruction=REALITY_CHECK_START_INSTRUCTION)
            raw = await self.gateway.call(Operation.CONVERSATION_TURN, request)
            validated = self.validator.validate_turn(raw, self._known(careers))
            record.metadata[REALITY_CHECK_ENTRY_KEY] = record.turn_count
            record.add_message("assistant", validated.message)
            self._apply(record, validated)
        else:
            self._enter_phase(record, target_phase)

        self._refresh_rankings(record, careers)
        self._save(record)
        return record

    async def complete_reality_check(self, session_id: str) -> SessionRecord:
        """
        Close the reality check with a final summary and complete the session.

        Raises:
            ValueError: Session is not in reality_check
        """
        record = self._load_open(session_id)
        if record.phase is not SessionPhase.REALITY_CHECK:
            raise ValueError(
                f"Can only complete reality check from reality_check phase (current: {record.phase.value})"
            )

        careers = self.catalog.list_careers()
        validated = await self._closing_summary(record, careers)
        record.add_message("assistant", validated.message)
        self._apply(record, validated)
        record.phase = self.controller.flow.terminal
        self._refresh_rankings(record, careers)
        self._save(record)
        return record

    # ===== SCORING =====

    def record_structured_answer(
        self,
        session_id: str,
        value: int,
        weights: Mapping[str, float],
    ) -> RiasecVector:
        """
        Apply one structured (Likert) answer to the raw accumulator.

        Returns:
            The accumulator converted to percentages
        """
        record = self._load_open(session_id)
        self.aggregator.apply_response(record.raw_scores, value, weights)
        record.metadata[STRUCTURED_ANSWERS_KEY] = record.metadata.get(STRUCTURED_ANSWERS_KEY, 0) + 1
        self._save(record)
        return normalize_scores(record.raw_scores)

    async def assess_scores(self, session_id: str) -> RiasecVector:
        """
        Ask the provider to score everything the user has said so far.

        The asserted scores replace the session's canonical vector.
        """
        record = self._load_open(session_id)
        if not record.user_messages():
            raise ValueError("No user messages to assess")

        careers = self.catalog.list_careers()
        raw = await self.gateway.call(Operation.RIASEC_ASSESSMENT, self._request(record, careers))
        assessment = self.validator.validate_score_assessment(raw)
        record.riasec_scores = self.aggregator.overwrite(assessment.scores)
        if assessment.confidence is not None:
            record.confidence["overall"] = assessment.confidence
        self._refresh_rankings(record, careers)
        self._save(record)
        return record.riasec_scores

    # ===== QUESTIONS =====

    async def next_contextual_question(self, session_id: str) -> str:
        """Generate one follow-up question (a stock question when the provider is unavailable)."""
        record = self._load(session_id)
        request = self._request(record, [])
        raw = await self.gateway.call(Operation.CONTEXTUAL_QUESTION, request, fallback=FALLBACK_QUESTION)
        return self.validator.validate_question_text(raw)

    async def generate_discriminating_questions(
        self,
        session_id: str,
        career_id: Any,
    ) -> List[DiscriminatingQuestion]:
        """
        Generate reality-check questions for one catalog career.

        The questions are returned to the caller and not stored on the session.
        """
        record = self._load(session_id)
        careers = self.catalog.list_careers()
        career = self._known(careers).get(str(career_id))
        if career is None:
            raise ValueError(f"Unknown career: {career_id}")

        request = self._request(record, [], target_career=career)
        raw = await self.gateway.call(Operation.DISCRIMINATING_QUESTIONS, request)
        return self.validator.validate_discriminating_questions(raw)

    # ===== READ ACCESS =====

    def get_results(self, session_id: str) -> Dict[str, Any]:
        """Session results with catalog details for every recommendation."""
        record = self._load(session_id)
        known = self._known(self.catalog.list_careers())
        types = top_types(record.riasec_scores, 3)

        recommendations = []
        for recommendation in record.recommendations:
            entry = known.get(recommendation.career_id)
            recommendations.append({
                **recommendation.to_dict(),
                "career": entry.to_dict() if entry else None,
            })

        return {
            "session_id": record.session_id,
            "phase": record.phase.value,
            "is_complete": record.phase is SessionPhase.COMPLETE,
            "riasec_scores": record.riasec_scores.to_dict(),
            "riasec_code": riasec_code(types) if not record.riasec_scores.is_zero() else "",
            "top_types": types,
            "profile": describe_profile(record.riasec_scores),
            "structured_scores": normalize_scores(record.raw_scores).to_dict(),
            "confidence": dict(record.confidence),
            "recommendations": recommendations,
            "rankings": [dict(r) for r in record.rankings],
            "conversation_history": [m.to_dict() for m in record.history],
        }

    def get_session_stats(self, session_id: str) -> Dict[str, Any]:
        record = self._load(session_id)
        entry = record.metadata.get(REALITY_CHECK_ENTRY_KEY)
        return {
            "message_count": record.turn_count,
            "user_message_count": len(record.user_messages()),
            "current_phase": record.phase.value,
            "has_recommendations": bool(record.recommendations),
            "is_complete": record.phase is SessionPhase.COMPLETE,
            "reality_check_messages": record.turn_count - entry if entry is not None else 0,
            "forced_completion": bool(record.metadata.get(FORCED_COMPLETION_KEY)),
        }

    # ===== HELPERS =====

    def _load(self, session_id: str) -> SessionRecord:
        record = self.sessions.get(session_id)
        if record is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return record

    def _load_open(self, session_id: str) -> SessionRecord:
        record = self._load(session_id)
        if self.controller.flow.is_terminal(record.phase):
            raise SessionClosedError(f"Session {session_id} is complete and read-only")
        return record

    def _save(self, record: SessionRecord) -> None:
        record.updated_at = utc_now()
        with log_on_exception(logger, "session save", level=logging.ERROR, include_traceback=True):
            self.sessions.save(record)

    @staticmethod
    def _known(careers: List[CareerCatalogEntry]) -> Dict[str, CareerCatalogEntry]:
        return {career.id: career for career in careers}

    def _request(
        self,
        record: SessionRecord,
        careers: List[CareerCatalogEntry],
        instruction: Optional[str] = None,
        target_career: Optional[CareerCatalogEntry] = None,
        phase: Optional[SessionPhase] = None,
    ) -> ProviderRequest:
        profile = describe_profile(record.riasec_scores)
        if not record.riasec_scores.is_zero():
            profile += f" Código RIASEC: {riasec_code(top_types(record.riasec_scores, 3))}."
        context = ProviderContext(
            phase=phase or record.phase,
            careers=list(careers),
            user_profile=profile,
            session_id=record.session_id,
            instruction=instruction,
            target_career=target_career,
        )
        return ProviderRequest(messages=list(record.history), context=context)

    async def _closing_summary(self, record: SessionRecord, careers: List[CareerCatalogEntry]) -> ValidatedResponse:
        request = self._request(
            record,
            careers,
            instruction=CLOSING_SUMMARY_INSTRUCTION,
            phase=SessionPhase.COMPLETE,
        )
        raw = await self.gateway.call(Operation.CONVERSATION_TURN, request)
        return self.validator.validate_turn(raw, self._known(careers))

    def _apply(self, record: SessionRecord, validated: ValidatedResponse) -> None:
        if validated.asserted_scores is not None:
            record.riasec_scores = self.aggregator.overwrite(validated.asserted_scores)
            if validated.assessment_confidence is not None:
                record.confidence["overall"] = validated.assessment_confidence
        if validated.recommendations:
            record.recommendations = list(validated.recommendations)

    def _enter_phase(self, record: SessionRecord, phase: SessionPhase) -> None:
        if phase is SessionPhase.REALITY_CHECK and REALITY_CHECK_ENTRY_KEY not in record.metadata:
            # Count from the message that opened the phase
            record.metadata[REALITY_CHECK_ENTRY_KEY] = record.turn_count - 1
        record.phase = phase

    def _refresh_rankings(self, record: SessionRecord, careers: List[CareerCatalogEntry]) -> List[CareerMatch]:
        if record.phase not in MATCHING_PHASES or record.riasec_scores.is_zero():
            return []
        matches = self.matcher.rank(record.riasec_scores, careers, self.match_limit, self.match_filters)
        record.rankings = [match.to_dict() for match in matches]
        return matches
