"""
In-memory repository implementations.

Sessions are stored as serialized dicts so every load returns a fresh copy,
the same way a document store would.
"""

import logging
from typing import Dict, Iterable, List, Optional

from src.assessment.types import CareerCatalogEntry, SessionRecord

from .base import CatalogRepositoryInterface, SessionRepositoryInterface

logger = logging.getLogger(__name__)


class InMemorySessionRepository(SessionRepositoryInterface):
    """Session store backed by a dict of serialized records."""

    def __init__(self):
        self._records: Dict[str, dict] = {}

    def get(self, session_id: str) -> Optional[SessionRecord]:
        data = self._records.get(session_id)
        return SessionRecord.from_dict(data) if data is not None else None

    def save(self, record: SessionRecord) -> None:
        self._records[record.session_id] = record.to_dict()
        logger.debug(f"Saved session {record.session_id} (phase={record.phase.value}, messages={record.turn_count})")

    def __len__(self) -> int:
        return len(self._records)


class InMemoryCatalogRepository(CatalogRepositoryInterface):
    """Catalog backed by a fixed list of entries."""

    def __init__(self, careers: Iterable[CareerCatalogEntry]):
        self._careers: List[CareerCatalogEntry] = list(careers)
        ids = [career.id for career in self._careers]
        if len(set(ids)) != len(ids):
            raise ValueError("Catalog ids must be unique")

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> "InMemoryCatalogRepository":
        return cls(CareerCatalogEntry.from_dict(row) for row in rows)

    def list_careers(self) -> List[CareerCatalogEntry]:
        return list(self._careers)
