"""
Tests for the in-memory session and catalog stores.
"""

from datetime import timedelta

import pytest

from src.assessment.phases import SessionPhase
from src.assessment.types import CareerRecommendation, RiasecVector, SessionRecord
from src.common.repositories import InMemoryCatalogRepository, InMemorySessionRepository


class TestInMemorySessionRepository:
    """Test session persistence."""

    def test_missing_session_returns_none(self, session_repository):
        assert session_repository.get("nope") is None

    def test_round_trip_preserves_fields(self, session_repository):
        record = SessionRecord(session_id="s-1", user_id="u-1", phase=SessionPhase.CAREER_MATCHING)
        record.add_message("assistant", "Hola")
        record.add_message("user", "Me gusta la música")
        record.riasec_scores = RiasecVector(artistic=90)
        record.raw_scores = RiasecVector(artistic=4.5)
        record.recommendations = [CareerRecommendation("4", "Diseño Gráfico", 82.0, "creatividad")]
        record.metadata["reality_check_entry_turn"] = 3

        session_repository.save(record)
        loaded = session_repository.get("s-1")

        assert loaded.phase is SessionPhase.CAREER_MATCHING
        assert loaded.last_user_message() == "Me gusta la música"
        assert loaded.riasec_scores.artistic == 90
        assert loaded.raw_scores.artistic == 4.5
        assert loaded.recommendations[0].display_name == "Diseño Gráfico"
        assert loaded.metadata == {"reality_check_entry_turn": 3}
        assert loaded.history[0].timestamp == record.history[0].timestamp

    def test_timestamps_are_utc_aware(self, session_repository):
        record = SessionRecord(session_id="s-1")
        record.add_message("user", "hola")
        session_repository.save(record)

        loaded = session_repository.get("s-1")
        for stamp in (loaded.created_at, loaded.updated_at, loaded.history[0].timestamp):
            assert stamp.utcoffset() == timedelta(0)

    def test_loads_are_independent_copies(self, session_repository):
        session_repository.save(SessionRecord(session_id="s-1"))

        first = session_repository.get("s-1")
        first.add_message("user", "sin guardar")

        assert session_repository.get("s-1").turn_count == 0
        assert len(session_repository) == 1


class TestInMemoryCatalogRepository:
    """Test catalog access."""

    def test_lists_in_catalog_order(self, catalog_repository):
        assert [c.id for c in catalog_repository.list_careers()] == ["1", "2", "3", "4"]

    def test_duplicate_ids_rejected(self, careers):
        with pytest.raises(ValueError, match="unique"):
            InMemoryCatalogRepository(careers + [careers[0]])

    def test_from_dicts(self):
        catalog = InMemoryCatalogRepository.from_dicts([
            {
                "id": 17,
                "name": "Enfermería",
                "riasec": {"R": 40, "I": 50, "S": 95, "C": 45},
                "duration_years": 5,
                "key_skills": ["empatía", "primeros auxilios"],
            },
        ])
        entry = catalog.list_careers()[0]
        assert entry.id == "17"
        assert entry.primary_type == "social"
        assert entry.secondary_type == "investigative"
        assert entry.key_skills == ("empatía", "primeros auxilios")

    def test_work_environment_is_a_tag_tuple(self):
        catalog = InMemoryCatalogRepository.from_dicts([
            {"id": 1, "name": "Química", "riasec": {"I": 90}, "work_environment": ["oficina", "laboratorio"]},
            {"id": 2, "name": "Agronomía", "riasec": {"R": 90}, "workEnvironment": "campo"},
            {"id": 3, "name": "Contabilidad", "riasec": {"C": 90}},
        ])
        chemistry, agronomy, accounting = catalog.list_careers()
        assert chemistry.work_environment == ("oficina", "laboratorio")
        assert chemistry.to_dict()["work_environment"] == ["oficina", "laboratorio"]
        assert agronomy.work_environment == ("campo",)
        assert accounting.work_environment == ()

    def test_declared_types_are_kept(self):
        catalog = InMemoryCatalogRepository.from_dicts([
            {"id": "x", "name": "Arquitectura", "riasec_vector": {"A": 80, "R": 80}, "primary_type": "A"},
        ])
        entry = catalog.list_careers()[0]
        assert entry.primary_type == "artistic"
        assert entry.secondary_type == "realistic"
