"""
Deterministic career ranking.

Ranks catalog careers by a user-weighted correlation between the user's
canonical 0-100 RIASEC vector and each career's 0-100 vector:

    u[d]            = user score / 100
    weight[d]       = u[d] + 0.1
    contribution[d] = u[d] * (career score / 100) * weight[d]
    compatibility   = round(sum(contribution) / sum(weight) * 100)

Dimensions the user scores highly dominate. Results are pure functions of the
inputs; ties keep catalog order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from src.assessment.scoring import top_types
from src.assessment.types import (
    DIMENSIONS,
    CareerCatalogEntry,
    CareerRecommendation,
    RiasecVector,
    resolve_dimension,
)

logger = logging.getLogger(__name__)

BASE_WEIGHT = 0.1

# Careers at or under this many years get an "accessible duration" reason
SHORT_DURATION_YEARS = 4

TYPE_DESCRIPTIONS = {
    "realistic": "trabajo práctico y manual",
    "investigative": "investigación y análisis",
    "artistic": "actividades creativas y expresivas",
    "social": "ayudar y trabajar con personas",
    "enterprising": "liderazgo y oportunidades de negocio",
    "conventional": "trabajo organizado y detallado",
}


@dataclass
class MatchFilters:
    """Pre-scoring catalog filters. Empty filters keep every entry."""

    max_duration_years: Optional[float] = None
    primary_types: Sequence[str] = ()

    def accepts(self, entry: CareerCatalogEntry) -> bool:
        if self.max_duration_years is not None:
            if entry.duration_years is None or entry.duration_years > self.max_duration_years:
                return False
        if self.primary_types:
            allowed = {resolve_dimension(t) for t in self.primary_types}
            if entry.primary_type not in allowed:
                return False
        return True


@dataclass
class CareerMatch:
    """One ranked career."""

    career: CareerCatalogEntry
    compatibility: int
    correlation: float
    primary_match: bool = False
    secondary_match: bool = False
    reasons: List[str] = field(default_factory=list)

    def to_recommendation(self) -> CareerRecommendation:
        return CareerRecommendation(
            career_id=self.career.id,
            display_name=self.career.name,
            confidence=float(self.compatibility),
            reasoning="; ".join(self.reasons),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "career_id": self.career.id,
            "name": self.career.name,
            "compatibility": self.compatibility,
            "primary_match": self.primary_match,
            "secondary_match": self.secondary_match,
            "reasons": list(self.reasons),
        }


def correlation(user: RiasecVector, career: RiasecVector) -> float:
    """User-weighted correlation in [0, 1] for two 0-100 vectors."""
    total = 0.0
    total_weight = 0.0
    for name in DIMENSIONS:
        user_score = min(100.0, max(0.0, getattr(user, name))) / 100
        career_score = min(100.0, max(0.0, getattr(career, name))) / 100
        weight = user_score + BASE_WEIGHT
        total += user_score * career_score * weight
        total_weight += weight
    return total / total_weight if total_weight > 0 else 0.0


class CareerMatcher:
    """Ranks a career catalog against a user RIASEC vector."""

    def rank(
        self,
        user_vector: RiasecVector,
        catalog: Iterable[CareerCatalogEntry],
        limit: Optional[int] = None,
        filters: Optional[MatchFilters] = None,
    ) -> List[CareerMatch]:
        """
        Score and sort the catalog.

        Args:
            user_vector: Canonical 0-100 user vector
            catalog: Catalog entries (order is the tie-breaker)
            limit: Keep at most this many matches (None keeps all)
            filters: Applied before scoring

        Returns:
            Matches sorted by descending compatibility
        """
        user_top = top_types(user_vector, 2)
        matches = []
        for entry in catalog:
            if filters and not filters.accepts(entry):
                continue
            matches.append(self._score(user_vector, user_top, entry))

        # Stable sort on the rounded percentage: equal percentages keep catalog order
        matches = sorted(matches, key=lambda m: -m.compatibility)
        if limit is not None:
            matches = matches[:limit]

        logger.debug(
            f"Ranked {len(matches)} careers"
            + (f", top: {matches[0].career.id} ({matches[0].compatibility})" if matches else "")
        )
        return matches

    def _score(self, user_vector: RiasecVector, user_top: List[str], entry: CareerCatalogEntry) -> CareerMatch:
        value = correlation(user_vector, entry.riasec_vector)
        primary_match = entry.primary_type in user_top
        secondary_match = entry.secondary_type in user_top
        return CareerMatch(
            career=entry,
            compatibility=int(round(value * 100)),
            correlation=value,
            primary_match=primary_match,
            secondary_match=secondary_match,
            reasons=self._reasons(user_top, entry, primary_match, secondary_match),
        )

    @staticmethod
    def _reasons(
        user_top: List[str],
        entry: CareerCatalogEntry,
        primary_match: bool,
        secondary_match: bool,
    ) -> List[str]:
        reasons = []
        if primary_match:
            reasons.append(f"Fuerte compatibilidad con tu interés principal en {TYPE_DESCRIPTIONS[entry.primary_type]}")
        if secondary_match:
            reasons.append(f"Se alinea con tu interés secundario en {TYPE_DESCRIPTIONS[entry.secondary_type]}")
        if user_top:
            reasons.append(f"Coincide con tu preferencia por {TYPE_DESCRIPTIONS[user_top[0]]}")
        if entry.duration_years is not None and entry.duration_years <= SHORT_DURATION_YEARS:
            reasons.append(f"Duración de estudios accesible ({entry.duration_years:g} años)")
        if entry.work_environment:
            reasons.append(f"Ambiente de trabajo en {', '.join(entry.work_environment)}")
        return reasons


def catalog_statistics(catalog: Iterable[CareerCatalogEntry]) -> Dict[str, Any]:
    """Counts per primary type, average study duration and duration buckets."""
    entries = list(catalog)
    by_type = {name: 0 for name in DIMENSIONS}
    buckets = {"1-2": 0, "3-4": 0, "5-6": 0, "7+": 0}
    durations = []

    for entry in entries:
        by_type[entry.primary_type] += 1
        if entry.duration_years is None:
            continue
        durations.append(entry.duration_years)
        if entry.duration_years <= 2:
            buckets["1-2"] += 1
        elif entry.duration_years <= 4:
            buckets["3-4"] += 1
        elif entry.duration_years <= 6:
            buckets["5-6"] += 1
        else:
            buckets["7+"] += 1

    average = round(sum(durations) / len(durations), 1) if durations else 0.0
    return {
        "total": len(entries),
        "by_primary_type": by_type,
        "average_duration_years": average,
        "duration_buckets": buckets,
    }
