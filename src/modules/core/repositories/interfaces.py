"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that every
module-specific repository interface extends.  Service-layer code depends
on these abstractions, never on Django ORM querysets directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the entity managed by the repository
    (e.g. ``Receipt``, ``Item``).  Writes are declared on the concrete
    interfaces because each one takes an explicit ``UnitOfWork``.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key, or ``None``."""
