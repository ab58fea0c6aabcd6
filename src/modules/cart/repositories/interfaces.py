"""Cart repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:
    from modules.cart.models import CartLine
    from shared.infrastructure.uow import UnitOfWork


class ICartRepository(ABC):
    @abstractmethod
    def get_lines(self, buyer_id: str, line_ids: Iterable[str]) -> List[CartLine]:
        """Return the buyer's lines among *line_ids* with item and options loaded."""

    @abstractmethod
    def delete_lines(self, uow: UnitOfWork, line_ids: Iterable[str]) -> int:
        """Delete the given lines; returns the number removed."""

    @abstractmethod
    def delete_for_item(self, uow: UnitOfWork, buyer_id: str, item_id: str) -> int:
        """Delete the buyer's lines for *item_id*; returns the number removed."""
