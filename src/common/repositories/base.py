"""
Repository Interface Definitions

Defines the abstract store contracts the engine depends on. The concrete
persistent store is supplied by the host application; in-memory
implementations live in memory_repository.py.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from src.assessment.types import CareerCatalogEntry, SessionRecord


class SessionRepositoryInterface(ABC):
    """
    Abstract interface for session records keyed by session id.

    Writes replace the whole record (last writer wins per turn).
    """

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionRecord]:
        """
        Load a session.

        Args:
            session_id: Session identifier

        Returns:
            SessionRecord if found, None otherwise
        """
        pass

    @abstractmethod
    def save(self, record: SessionRecord) -> None:
        """
        Persist the whole session record.

        Args:
            record: Session to store under record.session_id
        """
        pass


class CatalogRepositoryInterface(ABC):
    """Read-only access to the authoritative career catalog."""

    @abstractmethod
    def list_careers(self) -> List[CareerCatalogEntry]:
        """
        Return every catalog entry.

        Ids are globally unique and stable; they are the only trust anchor
        for provider-proposed recommendations.
        """
        pass
