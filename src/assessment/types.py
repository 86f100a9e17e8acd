"""
Types for the vocational assessment engine.

Defines the data structures shared by the phase controller, score aggregator,
career matcher, response validator and engine:
- RiasecVector: six-dimension interest profile
- ConversationMessage: one entry of the append-only history
- CareerCatalogEntry / CareerRecommendation: catalog rows and surfaced careers
- DiscriminatingQuestion: ephemeral reality-check question
- SessionRecord: what the session store persists
- ProviderContext / ProviderRequest: what the gateway sends upstream
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.assessment.phases import SessionPhase


# ===== RIASEC =====

DIMENSIONS: Tuple[str, ...] = (
    "realistic",
    "investigative",
    "artistic",
    "social",
    "enterprising",
    "conventional",
)

LETTER_TO_DIMENSION: Dict[str, str] = {name[0].upper(): name for name in DIMENSIONS}
DIMENSION_TO_LETTER: Dict[str, str] = {name: letter for letter, name in LETTER_TO_DIMENSION.items()}


def resolve_dimension(key: Any) -> Optional[str]:
    """Map 'I', 'i', 'Investigative' or 'investigative' to 'investigative'."""
    if not isinstance(key, str):
        return None
    label = key.strip()
    if len(label) == 1:
        return LETTER_TO_DIMENSION.get(label.upper())
    label = label.lower()
    return label if label in DIMENSIONS else None


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


@dataclass
class RiasecVector:
    """Score for each of the six RIASEC dimensions; all six always present."""

    realistic: float = 0.0
    investigative: float = 0.0
    artistic: float = 0.0
    social: float = 0.0
    enterprising: float = 0.0
    conventional: float = 0.0

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[Any, Any]]) -> "RiasecVector":
        """
        Build a vector from a mapping keyed by dimension name or letter.

        Unknown keys are ignored; non-numeric values count as 0.
        """
        vector = cls()
        for key, value in (values or {}).items():
            dimension = resolve_dimension(key)
            if dimension:
                setattr(vector, dimension, _as_number(value))
        return vector

    def get(self, key: str) -> float:
        dimension = resolve_dimension(key)
        if dimension is None:
            raise KeyError(key)
        return getattr(self, dimension)

    def items(self) -> List[Tuple[str, float]]:
        return [(name, getattr(self, name)) for name in DIMENSIONS]

    def copy(self) -> "RiasecVector":
        return RiasecVector(**self.to_dict())

    def is_zero(self) -> bool:
        return all(value == 0 for _, value in self.items())

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in DIMENSIONS}


# ===== CONVERSATION =====

MESSAGE_ROLES = ("user", "assistant", "system")


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class ConversationMessage:
    """One message of the session history."""

    role: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.role not in MESSAGE_ROLES:
            raise ValueError(f"Invalid message role: {self.role}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            timestamp=timestamp or utc_now(),
        )


# ===== CAREERS =====

def _tags(value: Any) -> Tuple[str, ...]:
    # A single string is one tag
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    return tuple(str(tag).strip() for tag in value if str(tag).strip())


@dataclass(frozen=True)
class CareerCatalogEntry:
    """
    One catalog career. Vector values are on a 0-100 scale.

    primary_type/secondary_type hold full dimension names and are derived from
    the vector when the catalog row does not carry them.
    """

    id: str
    name: str
    riasec_vector: RiasecVector
    description: str = ""
    duration_years: Optional[float] = None
    work_environment: Tuple[str, ...] = ()
    key_skills: Tuple[str, ...] = ()
    primary_type: Optional[str] = None
    secondary_type: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))
        ranked = sorted(
            self.riasec_vector.items(),
            key=lambda item: (-item[1], DIMENSIONS.index(item[0])),
        )
        primary = resolve_dimension(self.primary_type) if self.primary_type else None
        secondary = resolve_dimension(self.secondary_type) if self.secondary_type else None
        if primary is None:
            primary = ranked[0][0]
        if secondary is None:
            secondary = next(name for name, _ in ranked if name != primary)
        object.__setattr__(self, "primary_type", primary)
        object.__setattr__(self, "secondary_type", secondary)
        object.__setattr__(self, "key_skills", tuple(self.key_skills))
        object.__setattr__(self, "work_environment", _tags(self.work_environment))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CareerCatalogEntry":
        """Build an entry from a catalog row (vector under 'riasec_vector' or 'riasec')."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            riasec_vector=RiasecVector.from_mapping(data.get("riasec_vector") or data.get("riasec") or {}),
            description=data.get("description", ""),
            duration_years=data.get("duration_years"),
            work_environment=data.get("work_environment") or data.get("workEnvironment") or (),
            key_skills=tuple(data.get("key_skills") or ()),
            primary_type=data.get("primary_type"),
            secondary_type=data.get("secondary_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "riasec_vector": self.riasec_vector.to_dict(),
            "duration_years": self.duration_years,
            "work_environment": list(self.work_environment),
            "key_skills": list(self.key_skills),
            "primary_type": self.primary_type,
            "secondary_type": self.secondary_type,
        }


@dataclass
class CareerRecommendation:
    """A career surfaced to the user (confidence on a 0-100 scale)."""

    career_id: str
    display_name: str
    confidence: float
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "career_id": self.career_id,
            "display_name": self.display_name,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CareerRecommendation":
        return cls(
            career_id=str(data["career_id"]),
            display_name=data.get("display_name", ""),
            confidence=float(data.get("confidence", 0)),
            reasoning=data.get("reasoning", ""),
        )


# ===== REALITY CHECK =====

ASPECT_TAGS = (
    "physical",
    "emotional",
    "economic",
    "time_commitment",
    "social",
    "educational",
    "environmental",
)


@dataclass
class DiscriminatingQuestion:
    """A reality-check question about one demanding aspect of a career."""

    question: str
    aspect_tag: str
    importance: int = 3
    follow_up_enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "aspect_tag": self.aspect_tag,
            "importance": self.importance,
            "follow_up_enabled": self.follow_up_enabled,
        }


# ===== SESSION =====

@dataclass
class SessionRecord:
    """
    Persisted interview session.

    riasec_scores is the canonical 0-100 vector; raw_scores is the unbounded
    accumulator fed by the structured-answer path. The two are never mixed.
    """

    session_id: str
    user_id: Optional[str] = None
    phase: SessionPhase = SessionPhase.GREETING
    history: List[ConversationMessage] = field(default_factory=list)
    riasec_scores: RiasecVector = field(default_factory=RiasecVector)
    raw_scores: RiasecVector = field(default_factory=RiasecVector)
    confidence: Dict[str, float] = field(default_factory=dict)
    recommendations: List[CareerRecommendation] = field(default_factory=list)
    rankings: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def turn_count(self) -> int:
        """Number of messages in the history."""
        return len(self.history)

    def add_message(self, role: str, content: str) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self.history.append(message)
        return message

    def user_messages(self) -> List[str]:
        return [m.content for m in self.history if m.role == "user"]

    def last_user_message(self) -> Optional[str]:
        for message in reversed(self.history):
            if message.role == "user":
                return message.content
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "phase": self.phase.value,
            "history": [m.to_dict() for m in self.history],
            "riasec_scores": self.riasec_scores.to_dict(),
            "raw_scores": self.raw_scores.to_dict(),
            "confidence": dict(self.confidence),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "rankings": [dict(r) for r in self.rankings],
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        def _dt(value: Any) -> datetime:
            if isinstance(value, datetime):
                return value
            if isinstance(value, str):
                return datetime.fromisoformat(value)
            return utc_now()

        return cls(
            session_id=data["session_id"],
            user_id=data.get("user_id"),
            phase=SessionPhase(data.get("phase", SessionPhase.GREETING.value)),
            history=[ConversationMessage.from_dict(m) for m in data.get("history", [])],
            riasec_scores=RiasecVector.from_mapping(data.get("riasec_scores")),
            raw_scores=RiasecVector.from_mapping(data.get("raw_scores")),
            confidence=dict(data.get("confidence") or {}),
            recommendations=[CareerRecommendation.from_dict(r) for r in data.get("recommendations", [])],
            rankings=[dict(r) for r in data.get("rankings", [])],
            metadata=dict(data.get("metadata") or {}),
            created_at=_dt(data.get("created_at")),
            updated_at=_dt(data.get("updated_at")),
        )


# ===== PROVIDER REQUEST =====

@dataclass
class ProviderContext:
    """Context sent alongside the history on every provider call."""

    phase: SessionPhase
    careers: List[CareerCatalogEntry] = field(default_factory=list)
    user_profile: Optional[str] = None
    session_id: Optional[str] = None
    instruction: Optional[str] = None
    target_career: Optional[CareerCatalogEntry] = None


@dataclass
class ProviderRequest:
    """Conversation history plus context for one gateway call."""

    messages: List[ConversationMessage]
    context: ProviderContext
