"""
RIASEC score aggregation.

Two update paths feed a session:

1. Incremental (structured Likert answers): each answer adds
   ((value - 1) / 4) * weight to the raw accumulator for every dimension with
   a positive weight. Raw totals are unbounded and converted to percentages
   with normalize_scores().
2. Absolute overwrite (provider assessment): the provider asserts 0-100
   scores which replace the canonical vector wholesale after
   provider_scores_to_percent().
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from src.assessment.types import DIMENSIONS, DIMENSION_TO_LETTER, RiasecVector, resolve_dimension

logger = logging.getLogger(__name__)

# Raw total treated as 100%: ~15 questions x weight 3 x full response
NORMALIZATION_CEILING = 20.0

# Secondary type is mentioned when it reaches this share of the primary score
SECONDARY_TYPE_RATIO = 0.7

DIMENSION_LABELS = {
    "realistic": "Realista",
    "investigative": "Investigador",
    "artistic": "Artístico",
    "social": "Social",
    "enterprising": "Emprendedor",
    "conventional": "Convencional",
}


def provider_scores_to_percent(scores: Optional[Mapping[Any, Any]]) -> RiasecVector:
    """
    Convert provider-asserted scores into the canonical 0-100 vector.

    This is the only conversion applied to provider scores: values are
    coerced to numbers, clamped to [0, 100] and missing dimensions become 0.
    """
    vector = RiasecVector.from_mapping(scores)
    for name in DIMENSIONS:
        setattr(vector, name, float(min(100.0, max(0.0, getattr(vector, name)))))
    return vector


def normalize_scores(raw: RiasecVector, ceiling: float = NORMALIZATION_CEILING) -> RiasecVector:
    """Map raw accumulator totals onto 0-100: round(raw / ceiling * 100), clamped."""
    result = RiasecVector()
    for name, value in raw.items():
        percent = round(value / ceiling * 100)
        setattr(result, name, float(min(100, max(0, percent))))
    return result


def top_types(vector: RiasecVector, k: int = 3) -> List[str]:
    """Dimensions by descending score; ties keep canonical R, I, A, S, E, C order."""
    ranked = sorted(vector.items(), key=lambda item: (-item[1], DIMENSIONS.index(item[0])))
    return [name for name, _ in ranked[:k]]


def riasec_code(types: Sequence[str]) -> str:
    """Three-letter Holland code, e.g. ['investigative', 'artistic', 'social'] -> 'IAS'."""
    letters = []
    for name in types[:3]:
        dimension = resolve_dimension(name)
        if dimension:
            letters.append(DIMENSION_TO_LETTER[dimension])
    return "".join(letters)


def describe_profile(vector: RiasecVector) -> str:
    """
    Short human-readable summary of a 0-100 vector.

    Mentions the secondary type when it is close to the primary and says how
    spread out the profile is.
    """
    if vector.is_zero():
        return "Perfil aún sin datos suficientes."

    primary, secondary = top_types(vector, 2)
    primary_score = vector.get(primary)
    secondary_score = vector.get(secondary)

    description = f"Perfil predominantemente {DIMENSION_LABELS[primary]} ({primary_score:.0f}%)"
    if secondary_score >= primary_score * SECONDARY_TYPE_RATIO:
        description += f" con fuerte componente {DIMENSION_LABELS[secondary]} ({secondary_score:.0f}%)"

    # Spread measured on the 0-20 scale the thresholds were tuned for
    values = [value / 5 for _, value in vector.items()]
    spread = max(values) - min(values)
    if spread > 3:
        description += ". Intereses claramente definidos."
    elif spread > 1.5:
        description += ". Intereses moderadamente definidos."
    else:
        description += ". Intereses diversos y equilibrados."

    return description


class ScoreAggregator:
    """
    Applies score updates to a session's vectors.

    The aggregator is stateless; it mutates the vectors it is handed so the
    engine stays the single owner of session state.
    """

    def apply_response(self, raw: RiasecVector, value: int, weights: Mapping[str, float]) -> RiasecVector:
        """
        Add one Likert answer to the raw accumulator.

        Args:
            raw: Raw accumulator (mutated in place and returned)
            value: Likert response 1-5
            weights: Question weights keyed by dimension letter or name

        Raises:
            ValueError: If value is outside [1, 5] or not an integer
        """
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise ValueError(f"Likert response must be an integer in [1, 5], got {value!r}")

        normalized = (value - 1) / 4
        for key, weight in weights.items():
            dimension = resolve_dimension(key)
            if dimension is None:
                logger.warning(f"Ignoring weight for unknown dimension: {key}")
                continue
            if weight > 0:
                setattr(raw, dimension, getattr(raw, dimension) + normalized * weight)
        return raw

    def overwrite(self, scores: Optional[Mapping[Any, Any]]) -> RiasecVector:
        """Return the canonical vector that replaces the session's current one."""
        return provider_scores_to_percent(scores)
