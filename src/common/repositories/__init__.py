"""
Repository Pattern for session and catalog storage

Public API:
- SessionRepositoryInterface: Abstract interface for session records
- CatalogRepositoryInterface: Abstract interface for the career catalog
- InMemorySessionRepository / InMemoryCatalogRepository: in-process implementations

Usage:
    from src.common.repositories import InMemoryCatalogRepository, InMemorySessionRepository

    catalog = InMemoryCatalogRepository.from_dicts(rows)
    sessions = InMemorySessionRepository()
"""

from .base import CatalogRepositoryInterface, SessionRepositoryInterface
from .memory_repository import InMemoryCatalogRepository, InMemorySessionRepository

__all__ = [
    "SessionRepositoryInterface",
    "CatalogRepositoryInterface",
    "InMemorySessionRepository",
    "InMemoryCatalogRepository",
]
