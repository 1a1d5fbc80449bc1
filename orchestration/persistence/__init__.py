"""Persistence package.

Repository interfaces and the in-memory implementation.
"""

from .base import (
    Database,
    DuplicateRecordError,
    ImmutableRecordError,
    Mutator,
    Predicate,
    Repository,
    RepositoryError,
)
from .memory_store import InMemoryDatabase, InMemoryRepository

__all__ = [
    # Interfaces
    "Database",
    "Repository",
    "Predicate",
    "Mutator",
    # Errors
    "RepositoryError",
    "DuplicateRecordError",
    "ImmutableRecordError",
    # In-memory
    "InMemoryDatabase",
    "InMemoryRepository",
]
