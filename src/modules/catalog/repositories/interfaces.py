"""Catalog repository interface (read-only)."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.models import Item, OptionItem, ReformProposal


class ICatalogRepository(IRepository["Item"]):
    """Read access to items, their options and reform proposals."""

    @abstractmethod
    def get_option_items(self, ids: Iterable[str]) -> List[OptionItem]:
        """Return the option items with the given ids (missing ids are skipped)."""

    @abstractmethod
    def get_proposal(self, id: str) -> Optional[ReformProposal]:
        """Retrieve a reform proposal, or ``None``."""
