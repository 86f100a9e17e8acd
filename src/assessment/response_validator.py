"""
Response Validator: turns raw provider text into trusted structured output.

Stages for a conversation turn:
1. Layered JSON parse (src.common.json_utils.load_llm_json). When a reply is
   cut off after career suggestions but before its phase field, the repair
   adds nextPhase "complete".
2. Structural validation with pydantic models (message required, everything
   else optional with defaults; unknown phase labels become None).
3. Catalog membership: proposed careers whose id is not in the catalog are
   dropped and recorded as ValidationError items. Display names always come
   from the catalog entry.

The same module validates score-assessment replies, discriminating-question
arrays and plain-text question replies.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator

from src.assessment.phases import SessionPhase, parse_phase
from src.assessment.types import (
    ASPECT_TAGS,
    CareerCatalogEntry,
    CareerRecommendation,
    DiscriminatingQuestion,
    resolve_dimension,
)
from src.common.error_handling import ParseError, ValidationError
from src.common.json_utils import load_llm_json, strip_markdown_blocks

logger = logging.getLogger(__name__)

INTENTS = ("question", "clarification", "assessment", "recommendation", "completion_check", "farewell")

KnownCareers = Union[Mapping[str, CareerCatalogEntry], Iterable[str]]


# ===== PYDANTIC MODELS =====

class RiasecAssessmentModel(BaseModel):
    """Provider score assertion attached to a turn."""
    model_config = ConfigDict(extra="ignore")

    scores: Dict[str, Any] = Field(default_factory=dict, description="Dimension -> 0-100 score")
    confidence: Optional[float] = Field(None, description="Provider confidence in the scores")
    reasoning: str = Field(default="", description="Why the scores were assigned")

    @model_validator(mode="before")
    @classmethod
    def accept_flat_scores(cls, data: Any) -> Any:
        """Accept {"realistic": 40, ...} as shorthand for {"scores": {...}}."""
        if not isinstance(data, dict):
            return data
        if "scores" not in data:
            scores = {key: value for key, value in data.items() if resolve_dimension(key)}
            rest = {key: value for key, value in data.items() if key not in scores}
            return {**rest, "scores": scores}
        if not isinstance(data["scores"], dict):
            return {**data, "scores": {}}
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v):
        try:
            return float(v) if v is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def has_scores(self) -> bool:
        return any(resolve_dimension(key) for key in self.scores)


class CareerSuggestionModel(BaseModel):
    """One provider-proposed career."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    career_id: str = Field(..., validation_alias=AliasChoices("careerId", "career_id", "id"))
    name: str = Field(default="")
    confidence: float = Field(default=0.0)
    reasoning: str = Field(default="")

    @field_validator("career_id", mode="before")
    @classmethod
    def coerce_career_id(cls, v):
        """Ids are matched as strings: 12 and "12" refer to the same career."""
        if v is None or isinstance(v, (dict, list)):
            raise ValueError("careerId must be a scalar")
        value = str(v).strip()
        if not value:
            raise ValueError("careerId must not be empty")
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v):
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        # Fractions are read as shares of 100
        if 0 < value <= 1:
            value *= 100
        return min(100.0, max(0.0, value))

    @field_validator("name", "reasoning", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)


class ConversationTurnModel(BaseModel):
    """Structured reply to a conversation turn."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str = Field(..., min_length=1, description="Text shown to the user")
    intent: Optional[str] = Field(None)
    suggested_follow_up: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("suggestedFollowUp", "suggested_follow_up"),
    )
    riasec_assessment: Optional[RiasecAssessmentModel] = Field(
        None,
        validation_alias=AliasChoices("riasecAssessment", "riasecScores", "riasec_assessment"),
    )
    career_suggestions: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("careerSuggestions", "recommendations", "career_suggestions"),
    )
    next_phase: Optional[Any] = Field(None, validation_alias=AliasChoices("nextPhase", "next_phase"))

    @field_validator("message", mode="before")
    @classmethod
    def message_not_blank(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("message must be a non-empty string")
        return v.strip()

    @field_validator("intent", mode="before")
    @classmethod
    def known_intent(cls, v):
        if isinstance(v, str) and v.strip().lower() in INTENTS:
            return v.strip().lower()
        return None

    @field_validator("suggested_follow_up", mode="before")
    @classmethod
    def string_list(cls, v):
        if isinstance(v, str):
            return [v]
        if not isinstance(v, list):
            return []
        return [str(item) for item in v if item]

    @field_validator("riasec_assessment", mode="before")
    @classmethod
    def assessment_object(cls, v):
        return v if isinstance(v, dict) else None

    @field_validator("career_suggestions", mode="before")
    @classmethod
    def suggestion_list(cls, v):
        if isinstance(v, dict):
            return [v]
        return v if isinstance(v, list) else []


# ===== RESULT TYPES =====

@dataclass
class ValidatedResponse:
    """
    A conversation turn reply the engine can trust.

    asserted_scores holds the provider scores exactly as sent (keyed by
    dimension letter or name), or None when the reply carried no assessment.
    ScoreAggregator.overwrite() converts them to the canonical vector.
    """

    message: str
    intent: Optional[str] = None
    suggested_follow_up: List[str] = field(default_factory=list)
    asserted_scores: Optional[Dict[str, Any]] = None
    assessment_confidence: Optional[float] = None
    assessment_reasoning: str = ""
    recommendations: List[CareerRecommendation] = field(default_factory=list)
    next_phase: Optional[SessionPhase] = None
    declared_phase: Optional[str] = None
    validation_errors: List[ValidationError] = field(default_factory=list)
    all_recommendations_rejected: bool = False
    parse_strategy: str = "strict"
    truncated: bool = False

    @property
    def repaired(self) -> bool:
        return self.parse_strategy != "strict"

    @property
    def has_recommendations(self) -> bool:
        return bool(self.recommendations)


@dataclass
class ScoreAssessment:
    """Validated reply to a riasec_assessment call."""

    scores: Dict[str, Any]
    confidence: Optional[float] = None
    reasoning: str = ""


# ===== VALIDATOR =====

def _recommendations_without_phase(fragment: str) -> Optional[Dict[str, Any]]:
    """Truncation hook: close out replies that were cut after their suggestions."""
    has_suggestions = '"careerSuggestions"' in fragment or '"recommendations"' in fragment
    if has_suggestions and '"nextPhase"' not in fragment:
        return {"nextPhase": SessionPhase.COMPLETE.value}
    return None


def _catalog_names(known: KnownCareers) -> Dict[str, Optional[str]]:
    if isinstance(known, Mapping):
        return {str(key): getattr(entry, "name", None) for key, entry in known.items()}
    return {str(career_id): None for career_id in known}


class ResponseValidator:
    """Parses and validates raw provider replies."""

    def validate_turn(self, raw: str, known_careers: KnownCareers) -> ValidatedResponse:
        """
        Validate a conversation-turn reply.

        Args:
            raw: Raw provider text
            known_careers: Catalog as {id: entry} or an iterable of ids

        Returns:
            ValidatedResponse with only catalog-backed recommendations

        Raises:
            ParseError: If no object can be recovered or it has no message
        """
        try:
            parsed = load_llm_json(raw, "{", on_truncation=_recommendations_without_phase)
        except ValueError as e:
            raise ParseError(f"Could not extract JSON from provider reply: {e}", raw_text=raw)

        if not isinstance(parsed.value, dict):
            raise ParseError("Provider reply is not a JSON object", raw_text=raw)

        try:
            payload = ConversationTurnModel.model_validate(parsed.value)
        except PydanticValidationError as e:
            raise ParseError(f"Provider reply failed schema validation: {e}", raw_text=raw)

        if parsed.repaired:
            logger.warning(f"Provider reply repaired using {parsed.strategy} (truncated={parsed.truncated})")

        declared = payload.next_phase if isinstance(payload.next_phase, str) else None
        next_phase = parse_phase(declared)
        if declared and next_phase is None:
            logger.warning(f"Unknown phase label from provider: {declared!r}")

        response = ValidatedResponse(
            message=payload.message,
            intent=payload.intent,
            suggested_follow_up=payload.suggested_follow_up,
            next_phase=next_phase,
            declared_phase=declared,
            parse_strategy=parsed.strategy,
            truncated=parsed.truncated,
        )

        assessment = payload.riasec_assessment
        if assessment is not None and assessment.has_scores:
            response.asserted_scores = dict(assessment.scores)
            response.assessment_confidence = assessment.confidence
            response.assessment_reasoning = assessment.reasoning

        self._filter_recommendations(payload.career_suggestions, _catalog_names(known_careers), response)
        return response

    def _filter_recommendations(
        self,
        suggestions: List[Any],
        catalog: Dict[str, Optional[str]],
        response: ValidatedResponse,
    ) -> None:
        for item in suggestions:
            try:
                suggestion = CareerSuggestionModel.model_validate(item)
            except PydanticValidationError as e:
                logger.warning(f"Dropping malformed career suggestion {item!r}: {e.error_count()} error(s)")
                response.validation_errors.append(ValidationError(str(item), None))
                continue

            if suggestion.career_id not in catalog:
                logger.warning(
                    f"Suspected fabricated career: id={suggestion.career_id!r} name={suggestion.name!r} "
                    f"is not in the catalog, dropping"
                )
                response.validation_errors.append(ValidationError(suggestion.career_id, suggestion.name or None))
                continue

            response.recommendations.append(
                CareerRecommendation(
                    career_id=suggestion.career_id,
                    display_name=catalog[suggestion.career_id] or suggestion.name,
                    confidence=suggestion.confidence,
                    reasoning=suggestion.reasoning,
                )
            )

        response.all_recommendations_rejected = bool(suggestions) and not response.recommendations
        if response.all_recommendations_rejected:
            logger.warning(f"All {len(suggestions)} proposed careers were rejected")

    def validate_score_assessment(self, raw: str) -> ScoreAssessment:
        """
        Validate a riasec_assessment reply.

        Raises:
            ParseError: If no object is found or it carries no RIASEC dimension
        """
        try:
            parsed = load_llm_json(raw, "{")
        except ValueError as e:
            raise ParseError(f"Could not extract scores from provider reply: {e}", raw_text=raw)

        if not isinstance(parsed.value, dict):
            raise ParseError("Score reply is not a JSON object", raw_text=raw)

        try:
            assessment = RiasecAssessmentModel.model_validate(parsed.value)
        except PydanticValidationError as e:
            raise ParseError(f"Score reply failed schema validation: {e}", raw_text=raw)

        if not assessment.has_scores:
            raise ParseError("Score reply contains no RIASEC dimensions", raw_text=raw)

        return ScoreAssessment(
            scores=dict(assessment.scores),
            confidence=assessment.confidence,
            reasoning=assessment.reasoning,
        )

    def validate_discriminating_questions(self, raw: str) -> List[DiscriminatingQuestion]:
        """
        Validate a discriminating_questions reply (a JSON array).

        Items without question text or with an unknown aspect are dropped;
        importance is clamped to 1-5.

        Raises:
            ParseError: If no array can be recovered
        """
        try:
            parsed = load_llm_json(raw, "[")
        except ValueError as e:
            raise ParseError(f"Could not extract question list from provider reply: {e}", raw_text=raw)

        if not isinstance(parsed.value, list):
            raise ParseError("Question reply is not a JSON array", raw_text=raw)

        questions = []
        for item in parsed.value:
            question = self._question_item(item)
            if question is None:
                logger.warning(f"Dropping invalid discriminating question: {item!r}")
                continue
            questions.append(question)
        return questions

    @staticmethod
    def _question_item(item: Any) -> Optional[DiscriminatingQuestion]:
        if not isinstance(item, dict):
            return None
        text = item.get("question")
        if not isinstance(text, str) or not text.strip():
            return None
        aspect = item.get("careerAspect", item.get("aspect_tag", item.get("aspect")))
        aspect = aspect.strip().lower() if isinstance(aspect, str) else None
        if aspect not in ASPECT_TAGS:
            return None
        try:
            importance = int(item.get("importance", 3))
        except (TypeError, ValueError):
            importance = 3
        follow_up = item.get("followUpEnabled", item.get("follow_up_enabled", False))
        return DiscriminatingQuestion(
            question=text.strip(),
            aspect_tag=aspect,
            importance=min(5, max(1, importance)),
            follow_up_enabled=bool(follow_up),
        )

    def validate_question_text(self, raw: str) -> str:
        """
        Validate a plain-text contextual question reply.

        Raises:
            ParseError: If the reply is empty after cleanup
        """
        text = strip_markdown_blocks(raw or "").strip().strip('"').strip()
        if not text:
            raise ParseError("Empty question reply", raw_text=raw)
        return text
